# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNGForge Constants Module

Enumerations and fixed values of the PNG format (ISO/IEC 15948) used
throughout the encoder. Enum values are the codes written into the
stream wherever the format defines one.
"""

from enum import IntEnum


class ColorType(IntEnum):
    """IHDR colour type codes."""

    GRAYSCALE = 0
    RGB = 2
    PALETTE = 3
    GRAYSCALE_WITH_ALPHA = 4
    RGB_WITH_ALPHA = 6


class BitDepth(IntEnum):
    BIT1 = 1
    BIT2 = 2
    BIT4 = 4
    BIT8 = 8
    BIT16 = 16


class FilterMethod(IntEnum):
    """Scanline filter selection.

    0-4 are the filter-type bytes written in front of each scanline.
    ADAPTIVE picks one of them per row and is never written itself.
    """

    NONE = 0
    SUB = 1
    UP = 2
    AVERAGE = 3
    PAETH = 4
    ADAPTIVE = 5


class InterlaceMode(IntEnum):
    NONE = 0
    ADAM7 = 1


class ResolutionUnit(IntEnum):
    ASPECT_RATIO = 0
    PIXELS_PER_INCH = 1
    PIXELS_PER_CENTIMETER = 2
    PIXELS_PER_METER = 3


# Legal bit depths per colour type (ISO/IEC 15948 table 11.1)
ALLOWED_BIT_DEPTHS = {
    ColorType.GRAYSCALE: frozenset({1, 2, 4, 8, 16}),
    ColorType.RGB: frozenset({8, 16}),
    ColorType.PALETTE: frozenset({1, 2, 4, 8}),
    ColorType.GRAYSCALE_WITH_ALPHA: frozenset({8, 16}),
    ColorType.RGB_WITH_ALPHA: frozenset({8, 16}),
}

# Samples per pixel in the encoded stream
CHANNEL_COUNT = {
    ColorType.GRAYSCALE: 1,
    ColorType.RGB: 3,
    ColorType.PALETTE: 1,
    ColorType.GRAYSCALE_WITH_ALPHA: 2,
    ColorType.RGB_WITH_ALPHA: 4,
}

# Filter types tried by the adaptive search, in tie-break order
FILTER_TYPES = (
    FilterMethod.NONE,
    FilterMethod.SUB,
    FilterMethod.UP,
    FilterMethod.AVERAGE,
    FilterMethod.PAETH,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Adam7 passes as (x start, y start, x step, y step), 0-based
ADAM7_PASSES = (
    (0, 0, 8, 8),
    (4, 0, 8, 8),
    (0, 4, 4, 8),
    (2, 0, 4, 4),
    (0, 2, 2, 4),
    (1, 0, 2, 2),
    (0, 1, 1, 2),
)

# Chunk types
CHUNK_IHDR = b"IHDR"
CHUNK_PLTE = b"PLTE"
CHUNK_TRNS = b"tRNS"
CHUNK_PHYS = b"pHYs"
CHUNK_GAMA = b"gAMA"
CHUNK_TEXT = b"tEXt"
CHUNK_IDAT = b"IDAT"
CHUNK_IEND = b"IEND"

# pHYs unit specifier byte
PHYS_UNIT_UNKNOWN = 0
PHYS_UNIT_METER = 1

COMPRESSION_METHOD_DEFLATE = 0
FILTER_METHOD_ADAPTIVE = 0

MAX_PALETTE_SIZE = 256
MIN_COMPRESSION_LEVEL = 0
MAX_COMPRESSION_LEVEL = 9
DEFAULT_COMPRESSION_LEVEL = 6
DEFAULT_IDAT_SIZE = 8192                    # Bytes of compressed data per IDAT chunk

# PNG four-byte unsigned integers are limited to 2^31 - 1
MAX_UINT31 = 2**31 - 1

INCHES_PER_METER = 1 / 0.0254
CENTIMETERS_PER_METER = 100

GAMMA_SCALE = 100000
