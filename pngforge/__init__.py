# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNGForge - Public API

Re-exports the names needed to encode images so callers can write
``import pngforge`` and use ``pngforge.encode(...)``. Internal modules:

- core/constants.py: enums and PNG format constants
- core/config.py: EncoderConfig
- core/image.py: SourceImage, PixelFormat, ImageMetadata
- core/frame.py: ReducedFrame, Palette, Transparency
- core/chunks.py: chunk framing and payloads
- operators/: colour reduction, quantizers, packing, filters, Adam7, zlib
- encoder.py: PngEncoder and encode()
"""

from .core.config import DEFAULT_CONFIG, EncoderConfig
from .core.constants import (
    PNG_SIGNATURE,
    BitDepth,
    ColorType,
    FilterMethod,
    InterlaceMode,
    ResolutionUnit,
)
from .core.error import (
    ChunkError,
    ConfigurationError,
    ImageFormatError,
    PNGForgeError,
    QuantizationError,
)
from .core.image import ImageMetadata, PixelFormat, SourceImage
from .encoder import PngEncoder, encode
from .operators.quantize import ExactQuantizer, PillowQuantizer, QuantizeResult

__version__ = "1.0.0"

__all__ = [
    "BitDepth",
    "ChunkError",
    "ColorType",
    "ConfigurationError",
    "DEFAULT_CONFIG",
    "EncoderConfig",
    "ExactQuantizer",
    "FilterMethod",
    "ImageFormatError",
    "ImageMetadata",
    "InterlaceMode",
    "PNGForgeError",
    "PNG_SIGNATURE",
    "PillowQuantizer",
    "PixelFormat",
    "PngEncoder",
    "QuantizationError",
    "QuantizeResult",
    "ResolutionUnit",
    "SourceImage",
    "encode",
]
