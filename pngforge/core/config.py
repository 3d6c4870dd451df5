# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Encoder configuration and its validation.

EncoderConfig is immutable and validated on construction, so an illegal
combination (for example a 16-bit palette) fails before any pixel is read.
Colour type and bit depth may be left as None and are then inferred from
the source image by ``resolve()``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import TYPE_CHECKING

from .constants import (
    ALLOWED_BIT_DEPTHS,
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_IDAT_SIZE,
    MAX_COMPRESSION_LEVEL,
    MAX_PALETTE_SIZE,
    MAX_UINT31,
    MIN_COMPRESSION_LEVEL,
    BitDepth,
    ColorType,
    FilterMethod,
    InterlaceMode,
)
from .error import ConfigurationError

if TYPE_CHECKING:
    from ..operators.quantize import Quantizer
    from .image import SourceImage

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def coerce_enum(enum_cls: type[IntEnum], value, what: str):
    """Convert an enum member, its integer code or its name into a member.

    Names are matched case-insensitively; ``"rgb-with-alpha"``,
    ``"RGB_WITH_ALPHA"`` and ``"RgbWithAlpha"`` all work.

    Raises:
        ConfigurationError: value does not name a member. Values are never
            coerced to a neighbouring member.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid {what}: {value!r}")
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            raise ConfigurationError(f"Invalid {what}: {value}") from None
    if isinstance(value, str):
        candidates = (
            value.strip().upper().replace("-", "_"),
            _CAMEL_RE.sub("_", value.strip()).upper(),
        )
        for name in candidates:
            if name in enum_cls.__members__:
                return enum_cls[name]
        if value.strip().isdigit():
            return coerce_enum(enum_cls, int(value), what)
    raise ConfigurationError(f"Invalid {what}: {value!r}")


def _check_int(value, what: str, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{what} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ConfigurationError(f"{what} must be between {low} and {high}, got {value}")


@dataclass(frozen=True)
class EncoderConfig:
    """Immutable PNG encoder settings.

    Attributes
    ----------
    color_type:
        Target colour type, or None to follow the source image.
    bit_depth:
        Bits per sample, or None to follow the source (16 for 16-bit
        sources, 8 otherwise and for palettes).
    filter_method:
        Fixed scanline filter or ADAPTIVE for a per-row choice.
    compression_level:
        zlib level 0 (fastest) to 9 (smallest).
    interlace_mode:
        NONE or ADAM7.
    quantizer:
        Palette strategy; None selects the default Pillow-based quantizer.
    palette_size:
        Requested palette entries, 1..256. Clamped to 2**bit_depth.
    idat_size:
        Maximum payload of one IDAT chunk.
    write_physical, write_gamma, write_text:
        Emit pHYs, gAMA and tEXt from the image metadata when present.
    """

    color_type: ColorType | None = None
    bit_depth: BitDepth | None = None
    filter_method: FilterMethod = FilterMethod.ADAPTIVE
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    interlace_mode: InterlaceMode = InterlaceMode.NONE
    quantizer: Quantizer | None = None
    palette_size: int = MAX_PALETTE_SIZE
    idat_size: int = DEFAULT_IDAT_SIZE
    write_physical: bool = True
    write_gamma: bool = True
    write_text: bool = True

    def __post_init__(self) -> None:
        if self.color_type is not None:
            object.__setattr__(self, "color_type",
                               coerce_enum(ColorType, self.color_type, "color type"))
        if self.bit_depth is not None:
            object.__setattr__(self, "bit_depth",
                               coerce_enum(BitDepth, self.bit_depth, "bit depth"))
        object.__setattr__(self, "filter_method",
                           coerce_enum(FilterMethod, self.filter_method, "filter method"))
        object.__setattr__(self, "interlace_mode",
                           coerce_enum(InterlaceMode, self.interlace_mode, "interlace mode"))

        _check_int(self.compression_level, "Compression level",
                   MIN_COMPRESSION_LEVEL, MAX_COMPRESSION_LEVEL)
        _check_int(self.palette_size, "Palette size", 1, MAX_PALETTE_SIZE)
        _check_int(self.idat_size, "IDAT size", 1, MAX_UINT31)

        if self.color_type is not None and self.bit_depth is not None:
            allowed = ALLOWED_BIT_DEPTHS[self.color_type]
            if self.bit_depth not in allowed:
                raise ConfigurationError(
                    f"Bit depth {int(self.bit_depth)} is not allowed for "
                    f"{self.color_type.name}; expected one of {sorted(allowed)}"
                )

        if self.quantizer is not None and not callable(getattr(self.quantizer, "quantize", None)):
            raise ConfigurationError(f"Quantizer has no quantize() method: {self.quantizer!r}")

    @property
    def is_resolved(self) -> bool:
        return self.color_type is not None and self.bit_depth is not None

    @property
    def effective_palette_size(self) -> int:
        """Palette entries addressable at the configured bit depth."""
        if self.bit_depth is None:
            return self.palette_size
        return min(self.palette_size, 1 << int(self.bit_depth))

    def with_options(self, **changes) -> EncoderConfig:
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)

    def resolve(self, image: SourceImage) -> EncoderConfig:
        """Fill in colour type and bit depth from the source image.

        The IHDR values of the PNG the image was loaded from
        (``image.metadata``) come first; the pixel format decides the rest.

        Raises:
            ConfigurationError: the explicit bit depth is not legal for the
                inferred colour type.
        """
        if self.is_resolved:
            return self

        meta = image.metadata
        color_type = self.color_type
        if color_type is None and meta.color_type is not None:
            color_type = ColorType(meta.color_type)
        if color_type is None:
            if image.is_grayscale:
                color_type = ColorType.GRAYSCALE_WITH_ALPHA if image.has_alpha else ColorType.GRAYSCALE
            else:
                color_type = ColorType.RGB_WITH_ALPHA if image.has_alpha else ColorType.RGB

        bit_depth = self.bit_depth
        if bit_depth is None and meta.bit_depth in ALLOWED_BIT_DEPTHS[color_type]:
            bit_depth = BitDepth(meta.bit_depth)
        if bit_depth is None:
            if color_type == ColorType.PALETTE or not image.is_16bit:
                bit_depth = BitDepth.BIT8
            else:
                bit_depth = BitDepth.BIT16

        return replace(self, color_type=color_type, bit_depth=bit_depth)


DEFAULT_CONFIG = EncoderConfig()
