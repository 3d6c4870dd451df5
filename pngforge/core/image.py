# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Source image model.

A SourceImage wraps a numpy pixel array in one of a fixed set of memory
layouts (PixelFormat). Everything downstream reads pixels through one narrow
contract, ``channel(name)``, which returns a named channel as 16-bit
normalized samples regardless of how the source stores it. Adding a layout
means adding a PixelFormat member, nothing else.

The source is read-only to the encoder: the constructor takes a private
copy and marks it non-writeable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
from PIL import Image

from .constants import ColorType, ResolutionUnit
from .error import ImageFormatError


class PixelFormat(Enum):
    """Supported source layouts as (channel order, bits per sample)."""

    L8 = ("L", 8)
    L16 = ("L", 16)
    LA16 = ("LA", 8)
    LA32 = ("LA", 16)
    RGB24 = ("RGB", 8)
    BGR24 = ("BGR", 8)
    RGB48 = ("RGB", 16)
    RGBA32 = ("RGBA", 8)
    BGRA32 = ("BGRA", 8)
    ARGB32 = ("ARGB", 8)
    RGBA64 = ("RGBA", 16)

    def __init__(self, order: str, bits: int) -> None:
        self.order = order
        self.bits = bits

    @property
    def channels(self) -> int:
        return len(self.order)

    @property
    def dtype(self) -> type:
        return np.uint16 if self.bits == 16 else np.uint8

    @property
    def has_alpha(self) -> bool:
        return "A" in self.order

    @property
    def has_color(self) -> bool:
        return "L" not in self.order


# Pillow modes that map directly onto a PixelFormat
_PIL_MODES = {
    "L": PixelFormat.L8,
    "LA": PixelFormat.LA16,
    "RGB": PixelFormat.RGB24,
    "RGBA": PixelFormat.RGBA32,
    "I;16": PixelFormat.L16,
    "I;16B": PixelFormat.L16,
    "I;16L": PixelFormat.L16,
    "I": PixelFormat.L16,
}

# Modes Pillow can convert to RGB without losing anything we can encode
_PIL_CONVERT_RGB = frozenset({"CMYK", "YCbCr", "LAB", "HSV"})

# Raw modes of Pillow's PNG decoder and the IHDR (colour type, bit depth)
# each one stands for
_PNG_RAWMODES = {
    "1": (ColorType.GRAYSCALE, 1),
    "L;1": (ColorType.GRAYSCALE, 1),
    "L;2": (ColorType.GRAYSCALE, 2),
    "L;2S": (ColorType.GRAYSCALE, 2),
    "L;4": (ColorType.GRAYSCALE, 4),
    "L;4S": (ColorType.GRAYSCALE, 4),
    "L": (ColorType.GRAYSCALE, 8),
    "I;16B": (ColorType.GRAYSCALE, 16),
    "RGB": (ColorType.RGB, 8),
    "RGB;16B": (ColorType.RGB, 16),
    "P;1": (ColorType.PALETTE, 1),
    "P;2": (ColorType.PALETTE, 2),
    "P;4": (ColorType.PALETTE, 4),
    "P": (ColorType.PALETTE, 8),
    "LA": (ColorType.GRAYSCALE_WITH_ALPHA, 8),
    "LA;16B": (ColorType.GRAYSCALE_WITH_ALPHA, 16),
    "RGBA": (ColorType.RGB_WITH_ALPHA, 8),
    "RGBA;16B": (ColorType.RGB_WITH_ALPHA, 16),
}


def png_header(image: Image.Image) -> tuple[ColorType, int] | None:
    """IHDR colour type and bit depth of a Pillow PNG that is not loaded yet.

    Pillow only keeps the decoder raw mode in ``image.tile`` until the
    pixels are loaded; afterwards (and for non-PNG images) this is None.
    """
    if image.format != "PNG" or not image.tile:
        return None
    args = image.tile[0][3]
    rawmode = args[0] if isinstance(args, tuple) else args
    return _PNG_RAWMODES.get(rawmode)


@dataclass(frozen=True)
class ImageMetadata:
    """Format-level metadata carried alongside the pixels.

    Attributes
    ----------
    horizontal_resolution, vertical_resolution:
        Pixel density in ``resolution_unit``; ``None`` when unknown. With
        ``ASPECT_RATIO`` the two values only express the pixel aspect ratio.
    transparent_l8, transparent_l16, transparent_rgb24, transparent_rgb48:
        Declared single-colour transparency keys, one per sample width.
    gamma:
        Image gamma (e.g. ``1 / 2.2``) or ``None``.
    text:
        Keyword/value pairs written as tEXt chunks.
    color_type, bit_depth:
        IHDR values of the PNG the image was loaded from. An encoder
        configuration that leaves them open re-uses them.
    """

    horizontal_resolution: float | None = None
    vertical_resolution: float | None = None
    resolution_unit: ResolutionUnit = ResolutionUnit.PIXELS_PER_INCH
    transparent_l8: int | None = None
    transparent_l16: int | None = None
    transparent_rgb24: tuple[int, int, int] | None = None
    transparent_rgb48: tuple[int, int, int] | None = None
    gamma: float | None = None
    text: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    color_type: ColorType | None = None
    bit_depth: int | None = None

    @property
    def has_resolution(self) -> bool:
        return self.horizontal_resolution is not None and self.vertical_resolution is not None

    @property
    def has_transparency(self) -> bool:
        return any(
            key is not None
            for key in (self.transparent_l8, self.transparent_l16,
                        self.transparent_rgb24, self.transparent_rgb48)
        )


class SourceImage:
    """Read-only raster image in one of the PixelFormat layouts."""

    def __init__(self, pixels, pixel_format: PixelFormat | str,
                 metadata: ImageMetadata | None = None) -> None:
        if isinstance(pixel_format, str):
            try:
                pixel_format = PixelFormat[pixel_format.upper()]
            except KeyError:
                raise ImageFormatError(f"Unknown pixel format: {pixel_format!r}") from None

        array = np.asarray(pixels)
        if array.ndim == 2 and pixel_format.channels == 1:
            array = array[:, :, np.newaxis]
        if array.ndim != 3 or array.shape[2] != pixel_format.channels:
            raise ImageFormatError(
                f"{pixel_format.name} expects shape (height, width, {pixel_format.channels}), "
                f"got {array.shape}"
            )
        if array.shape[0] == 0 or array.shape[1] == 0:
            raise ImageFormatError("Image width and height must be greater than zero")
        if array.dtype.kind not in "ui":
            raise ImageFormatError(f"Pixel data must be integers, got {array.dtype}")
        if array.dtype != pixel_format.dtype:
            limit = (1 << pixel_format.bits) - 1
            if array.size and (array.min() < 0 or array.max() > limit):
                raise ImageFormatError(
                    f"Sample values out of range 0..{limit} for {pixel_format.name}"
                )

        # Private copy; callers keep ownership of their own buffer
        self._pixels = np.array(array, dtype=pixel_format.dtype, copy=True)
        self._pixels.flags.writeable = False
        self.pixel_format = pixel_format
        self.metadata = metadata if metadata is not None else ImageMetadata()

    def __repr__(self) -> str:
        return f"SourceImage({self.width}x{self.height}, {self.pixel_format.name})"

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def has_alpha(self) -> bool:
        return self.pixel_format.has_alpha

    @property
    def is_grayscale(self) -> bool:
        return not self.pixel_format.has_color

    @property
    def is_16bit(self) -> bool:
        return self.pixel_format.bits == 16

    def channel(self, name: str) -> np.ndarray:
        """Return one channel as 16-bit normalized samples.

        Args:
            name: One of "R", "G", "B", "A" or "L".

        Returns:
            uint16 array of shape (height, width). 8-bit samples are widened
            by 257 so 0..255 maps exactly onto 0..65535. A missing alpha
            channel reads as fully opaque; gray sources answer R, G and B
            with their luminance.

        Raises:
            ImageFormatError: "L" requested from a colour source, or an
                unknown channel name.
        """
        order = self.pixel_format.order
        name = name.upper()
        if name not in "RGBAL" or len(name) != 1:
            raise ImageFormatError(f"Unknown channel: {name!r}")

        if name == "A" and "A" not in order:
            return np.full((self.height, self.width), 0xFFFF, dtype=np.uint16)
        if name in "RGB" and "L" in order:
            name = "L"
        if name not in order:
            raise ImageFormatError(
                f"Channel {name!r} is not available in {self.pixel_format.name}"
            )

        samples = self._pixels[:, :, order.index(name)].astype(np.uint16)
        if self.pixel_format.bits == 8:
            samples *= 257
        return samples

    def rgba16(self) -> np.ndarray:
        """Return the image as (height, width, 4) uint16 RGBA."""
        return np.stack([self.channel(c) for c in "RGBA"], axis=-1)

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, pixels, pixel_format: PixelFormat | str,
                   metadata: ImageMetadata | None = None) -> SourceImage:
        return cls(pixels, pixel_format, metadata)

    @classmethod
    def from_pil(cls, image: Image.Image,
                 header: tuple[ColorType, int] | None = None) -> SourceImage:
        """Build a SourceImage from a Pillow image, keeping PNG metadata.

        Palette images are expanded to RGB or RGBA; bilevel images to L.

        Args:
            image: Any Pillow image.
            header: IHDR (colour type, bit depth) of the source PNG; read
                from the image itself when it has not been loaded yet.
        """
        if header is None:
            header = png_header(image)
        original = image
        mode = image.mode
        if mode in ("P", "PA"):
            has_alpha = mode == "PA" or "transparency" in image.info
            image = image.convert("RGBA" if has_alpha else "RGB")
        elif mode == "1":
            image = image.convert("L")
        elif mode in _PIL_CONVERT_RGB:
            image = image.convert("RGB")
        elif mode not in _PIL_MODES:
            raise ImageFormatError(f"Unsupported Pillow image mode: {mode}")

        pixel_format = _PIL_MODES[image.mode]
        metadata = _metadata_from_info(original, pixel_format, header)
        return cls(np.asarray(image), pixel_format, metadata)

    @classmethod
    def open(cls, path) -> SourceImage:
        """Load an image file with Pillow."""
        with Image.open(path) as image:
            header = png_header(image)
            image.load()
            return cls.from_pil(image, header)


def _metadata_from_info(image: Image.Image, pixel_format: PixelFormat,
                        header: tuple[ColorType, int] | None = None) -> ImageMetadata:
    """Translate Pillow's ``info`` dictionary into ImageMetadata.

    Pillow widens 1, 2 and 4-bit gray pixels to 0..255 but reports the tRNS
    key as the raw sample, so the key is widened the same way. For 16-bit
    RGB Pillow keeps only the high byte of each sample, and of the key.
    """
    info = image.info
    values: dict = {}
    if header is not None:
        values["color_type"], values["bit_depth"] = header
    elif image.mode == "1":
        values["color_type"], values["bit_depth"] = ColorType.GRAYSCALE, 1
    source_depth = values.get("bit_depth", 8)

    if "dpi" in info:
        values["horizontal_resolution"], values["vertical_resolution"] = map(float, info["dpi"])
        values["resolution_unit"] = ResolutionUnit.PIXELS_PER_INCH
    elif "aspect" in info:
        values["horizontal_resolution"], values["vertical_resolution"] = map(float, info["aspect"])
        values["resolution_unit"] = ResolutionUnit.ASPECT_RATIO

    key = info.get("transparency")
    if isinstance(key, int) and pixel_format.order == "L":
        if pixel_format.bits == 16:
            values["transparent_l16"] = key
        elif source_depth < 8:
            values["transparent_l8"] = key * (255 // ((1 << source_depth) - 1))
        else:
            values["transparent_l8"] = key
    elif isinstance(key, tuple) and len(key) == 3 and pixel_format.order == "RGB":
        if source_depth == 16:
            values["transparent_rgb24"] = tuple(int(v) >> 8 for v in key)
        else:
            values["transparent_rgb24"] = tuple(int(v) for v in key)

    if "gamma" in info:
        values["gamma"] = float(info["gamma"])

    text = getattr(image, "text", None) or {}
    values["text"] = tuple(
        (str(keyword), value) for keyword, value in text.items() if isinstance(value, str)
    )
    return ImageMetadata(**values)
