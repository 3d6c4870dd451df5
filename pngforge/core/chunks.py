# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNG chunk framing and payload builders.

Every chunk is laid out as a big-endian length, the 4-byte ASCII type, the
payload and a CRC-32 computed over type and payload (not the length).
zlib's crc32 uses the same polynomial as PNG.
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from .constants import (
    CENTIMETERS_PER_METER,
    COMPRESSION_METHOD_DEFLATE,
    FILTER_METHOD_ADAPTIVE,
    GAMMA_SCALE,
    INCHES_PER_METER,
    MAX_UINT31,
    PHYS_UNIT_METER,
    PHYS_UNIT_UNKNOWN,
    PNG_SIGNATURE,
    ColorType,
    InterlaceMode,
    ResolutionUnit,
)
from .error import ChunkError
from .frame import Palette, ReducedFrame


@dataclass(frozen=True)
class Chunk:
    type: bytes
    data: bytes = b""

    def __post_init__(self) -> None:
        if len(self.type) != 4 or not self.type.isalpha() or not self.type.isascii():
            raise ChunkError(f"Invalid chunk type: {self.type!r}")
        if len(self.data) > MAX_UINT31:
            raise ChunkError(f"Chunk {self.type!r} payload too large: {len(self.data)} bytes")

    @property
    def crc(self) -> int:
        return zlib.crc32(self.data, zlib.crc32(self.type)) & 0xFFFFFFFF

    def to_bytes(self) -> bytes:
        return (struct.pack(">I", len(self.data)) + self.type + self.data
                + struct.pack(">I", self.crc))


def write_chunk(stream: BinaryIO, chunk_type: bytes, data: bytes = b"") -> int:
    """Write one framed chunk to ``stream``; returns the bytes written."""
    encoded = Chunk(chunk_type, bytes(data)).to_bytes()
    stream.write(encoded)
    return len(encoded)


def _check_uint31(value: int, what: str) -> None:
    if not 0 <= value <= MAX_UINT31:
        raise ChunkError(f"{what} out of range 0..{MAX_UINT31}: {value}")


# ----------------------------------------------------------------------
# Payload builders
# ----------------------------------------------------------------------

def ihdr_data(width: int, height: int, bit_depth: int, color_type: ColorType,
              interlace_mode: InterlaceMode) -> bytes:
    """IHDR: width, height, bit depth, colour type, compression, filter, interlace."""
    if width <= 0 or height <= 0:
        raise ChunkError("Image width and height must be greater than zero")
    _check_uint31(width, "Image width")
    _check_uint31(height, "Image height")
    return struct.pack(
        ">IIBBBBB",
        width, height, int(bit_depth), int(color_type),
        COMPRESSION_METHOD_DEFLATE, FILTER_METHOD_ADAPTIVE, int(interlace_mode),
    )


def plte_data(palette: Palette) -> bytes:
    if not 1 <= len(palette) <= 256:
        raise ChunkError(f"Palette must have 1 to 256 entries, got {len(palette)}")
    return palette.rgb_bytes()


def trns_data(frame: ReducedFrame) -> bytes | None:
    """tRNS payload for the frame, or None when no transparency applies.

    Palette frames carry one alpha byte per entry. Gray and RGB frames carry
    a single key as 2-byte samples holding values at the frame's bit depth.
    """
    if frame.color_type == ColorType.PALETTE:
        return frame.palette.alpha_bytes() if frame.palette is not None else None

    key = frame.transparency
    if key is None:
        return None
    if frame.color_type == ColorType.GRAYSCALE and key.kind == "gray":
        return struct.pack(">H", *key.value)
    if frame.color_type == ColorType.RGB and key.kind == "rgb":
        return struct.pack(">3H", *key.value)
    return None


def phys_data(horizontal: float, vertical: float, unit: ResolutionUnit) -> bytes:
    """pHYs payload. Inch and centimetre densities are stored per metre."""
    unit = ResolutionUnit(unit)
    if unit == ResolutionUnit.ASPECT_RATIO:
        unit_byte = PHYS_UNIT_UNKNOWN
        scale = 1.0
    elif unit == ResolutionUnit.PIXELS_PER_INCH:
        unit_byte = PHYS_UNIT_METER
        scale = INCHES_PER_METER
    elif unit == ResolutionUnit.PIXELS_PER_CENTIMETER:
        unit_byte = PHYS_UNIT_METER
        scale = CENTIMETERS_PER_METER
    else:
        unit_byte = PHYS_UNIT_METER
        scale = 1.0

    x = int(round(horizontal * scale))
    y = int(round(vertical * scale))
    _check_uint31(x, "Horizontal resolution")
    _check_uint31(y, "Vertical resolution")
    return struct.pack(">IIB", x, y, unit_byte)


def gama_data(gamma: float) -> bytes:
    value = int(round(gamma * GAMMA_SCALE))
    if value <= 0:
        raise ChunkError(f"Gamma must be positive, got {gamma}")
    _check_uint31(value, "Gamma")
    return struct.pack(">I", value)


def text_data(keyword: str, text: str) -> bytes:
    """tEXt payload: Latin-1 keyword (1-79 bytes), NUL, Latin-1 text."""
    try:
        key_bytes = keyword.encode("latin-1")
        text_bytes = text.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise ChunkError(f"tEXt entries must be Latin-1: {keyword!r}") from exc
    if not 1 <= len(key_bytes) <= 79 or b"\x00" in key_bytes:
        raise ChunkError(f"Invalid tEXt keyword: {keyword!r}")
    if b"\x00" in text_bytes:
        raise ChunkError(f"tEXt text for {keyword!r} contains a NUL byte")
    return key_bytes + b"\x00" + text_bytes


# ----------------------------------------------------------------------
# Reading
# ----------------------------------------------------------------------

def iter_chunks(data: bytes) -> Iterator[Chunk]:
    """Walk the chunks of a PNG byte stream, verifying each CRC.

    Stops after IEND.

    Raises:
        ChunkError: missing signature, truncated chunk or CRC mismatch.
    """
    if not data.startswith(PNG_SIGNATURE):
        raise ChunkError("Data does not start with the PNG signature")

    offset = len(PNG_SIGNATURE)
    while offset < len(data):
        if offset + 8 > len(data):
            raise ChunkError("Unexpected end of PNG data")
        length = struct.unpack(">I", data[offset:offset + 4])[0]
        chunk_type = data[offset + 4:offset + 8]
        offset += 8
        if offset + length + 4 > len(data):
            raise ChunkError(f"Truncated {chunk_type!r} chunk")
        chunk = Chunk(chunk_type, data[offset:offset + length])
        offset += length
        crc = struct.unpack(">I", data[offset:offset + 4])[0]
        offset += 4
        if crc != chunk.crc:
            raise ChunkError(f"CRC mismatch in {chunk_type!r} chunk")
        yield chunk
        if chunk_type == b"IEND":
            return
