# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNG encoder.

Drives the pipeline for one image:

  resolve config -> reduce colour type (quantize) -> Adam7 passes ->
  pack rows -> filter scanlines -> zlib -> chunks

The encoder keeps no state between calls; one PngEncoder may be shared by
several threads as long as its quantizer and compressor are. The complete
stream is built in memory and only returned once every chunk is written, so
a failure never leaves a partial PNG behind.
"""

from __future__ import annotations

import io
import logging
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Iterator

from PIL import Image

from .core.chunks import (
    gama_data,
    ihdr_data,
    phys_data,
    plte_data,
    text_data,
    trns_data,
    write_chunk,
)
from .core.config import EncoderConfig
from .core.constants import (
    CHUNK_GAMA,
    CHUNK_IDAT,
    CHUNK_IEND,
    CHUNK_IHDR,
    CHUNK_PHYS,
    CHUNK_PLTE,
    CHUNK_TEXT,
    CHUNK_TRNS,
    PNG_SIGNATURE,
    FilterMethod,
)
from .core.error import ImageFormatError
from .core.frame import ReducedFrame
from .core.image import SourceImage
from .operators.color_reduce import reduce_frame
from .operators.compression import Compressor, IdatWriter
from .operators.filter import filter_scanlines
from .operators.interlace import iter_passes
from .operators.packing import pack_rows

logger = logging.getLogger(__name__)


def as_source_image(image: SourceImage | Image.Image) -> SourceImage:
    """Accept a SourceImage or a Pillow image."""
    if isinstance(image, SourceImage):
        return image
    if isinstance(image, Image.Image):
        return SourceImage.from_pil(image)
    raise ImageFormatError(f"Cannot encode object of type {type(image).__name__}")


def iter_scanlines(frame: ReducedFrame, config: EncoderConfig) -> Iterator[bytes]:
    """Yield every filtered scanline of the frame in stream order."""
    bpp = frame.bytes_per_pixel
    for sub_image in iter_passes(frame.samples, config.interlace_mode):
        rows = pack_rows(sub_image, int(frame.bit_depth))
        yield from filter_scanlines(rows, bpp, config.filter_method)


class PngEncoder:
    """Encode images to PNG with a fixed configuration.

    Args:
        config: Encoder settings; defaults to ``EncoderConfig()``.
        compressor: Optional replacement for the zlib compressor.
        **options: EncoderConfig fields overriding ``config``.
    """

    def __init__(self, config: EncoderConfig | None = None,
                 compressor: Compressor | None = None, **options) -> None:
        if config is None:
            config = EncoderConfig(**options)
        elif options:
            config = config.with_options(**options)
        self.config = config
        self.compressor = compressor

    def __repr__(self) -> str:
        return f"PngEncoder({self.config!r})"

    def encode(self, image: SourceImage | Image.Image) -> bytes:
        """Encode an image and return the complete PNG byte stream.

        Raises:
            ConfigurationError: the configuration does not fit the image.
            QuantizationError: the palette quantizer failed.
            zlib.error, MemoryError: raised by the compressor, unchanged.
        """
        image = as_source_image(image)
        config = self.config.resolve(image)
        logger.debug(
            "Encoding %dx%d %s as %s/%d-bit, filter %s, level %d, interlace %s",
            image.width, image.height, image.pixel_format.name,
            config.color_type.name, int(config.bit_depth), config.filter_method.name,
            config.compression_level, config.interlace_mode.name,
        )

        frame = reduce_frame(image, config)
        idat_payloads = self._compress_frame(frame, config)
        metadata = image.metadata

        stream = io.BytesIO()
        stream.write(PNG_SIGNATURE)
        write_chunk(stream, CHUNK_IHDR, ihdr_data(
            frame.width, frame.height, frame.bit_depth, frame.color_type, config.interlace_mode,
        ))

        if config.write_gamma and metadata.gamma is not None:
            write_chunk(stream, CHUNK_GAMA, gama_data(metadata.gamma))

        if frame.palette is not None:
            write_chunk(stream, CHUNK_PLTE, plte_data(frame.palette))

        transparency = trns_data(frame)
        if transparency is not None:
            write_chunk(stream, CHUNK_TRNS, transparency)

        if config.write_physical and metadata.has_resolution:
            write_chunk(stream, CHUNK_PHYS, phys_data(
                metadata.horizontal_resolution,
                metadata.vertical_resolution,
                metadata.resolution_unit,
            ))

        if config.write_text:
            for keyword, text in metadata.text:
                write_chunk(stream, CHUNK_TEXT, text_data(keyword, text))

        for payload in idat_payloads:
            write_chunk(stream, CHUNK_IDAT, payload)
        write_chunk(stream, CHUNK_IEND)

        data = stream.getvalue()
        logger.debug("Encoded PNG is %d bytes", len(data))
        return data

    def _compress_frame(self, frame: ReducedFrame, config: EncoderConfig) -> list[bytes]:
        writer = IdatWriter(config.compression_level, config.idat_size, self.compressor)
        used = Counter()
        for scanline in iter_scanlines(frame, config):
            used[scanline[0]] += 1
            writer.write(scanline)
        payloads = writer.close()

        if logger.isEnabledFor(logging.DEBUG):
            summary = ", ".join(
                f"{FilterMethod(code).name}={count}" for code, count in sorted(used.items())
            )
            logger.debug("Scanline filters: %s", summary or "none")
        return payloads

    def encode_to_stream(self, image: SourceImage | Image.Image, stream: BinaryIO) -> int:
        """Encode and write to a binary stream; returns the bytes written."""
        data = self.encode(image)
        stream.write(data)
        return len(data)

    def save(self, image: SourceImage | Image.Image, path: str | Path) -> int:
        """Encode and write to ``path``. Nothing is written if encoding fails."""
        data = self.encode(image)
        Path(path).write_bytes(data)
        return len(data)


def encode(image: SourceImage | Image.Image, config: EncoderConfig | None = None,
           **options) -> bytes:
    """Encode an image to PNG bytes.

    ``options`` are EncoderConfig fields, e.g.
    ``encode(img, color_type="palette", bit_depth=4, interlace_mode="adam7")``.
    """
    return PngEncoder(config, **options).encode(image)
