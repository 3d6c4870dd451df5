# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Exception hierarchy for PNGForge.

Configuration problems are detected before any output is produced.
Compressor failures (``zlib.error``, ``MemoryError``) are not wrapped and
reach the caller unchanged.
"""


class PNGForgeError(Exception):
    """Base class for all errors raised by PNGForge."""


class ConfigurationError(PNGForgeError, ValueError):
    """Raised for an illegal encoder configuration.

    Examples are a bit depth that the colour type does not allow, a palette
    size outside 1..256 or a compression level outside 0..9.
    """


class ImageFormatError(PNGForgeError, ValueError):
    """Raised when source pixel data does not match its declared layout."""


class QuantizationError(PNGForgeError):
    """Raised when a quantizer cannot honour its contract."""


class ChunkError(PNGForgeError, ValueError):
    """Raised for malformed chunk types or truncated chunk streams."""
