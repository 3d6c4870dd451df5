# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

# Compressor Adapter
#
# Feeds filtered scanlines through one zlib/deflate stream and splits the
# result into IDAT payloads. The level trades time for size only; the
# decompressed bytes are identical at every level. zlib errors propagate
# to the caller unchanged.

import logging
import zlib
from typing import Protocol

from ..core.constants import DEFAULT_COMPRESSION_LEVEL, DEFAULT_IDAT_SIZE

logger = logging.getLogger(__name__)


class CompressStream(Protocol):
    def compress(self, data: bytes) -> bytes: ...

    def flush(self) -> bytes: ...


class Compressor(Protocol):
    """Factory for zlib-format compression streams."""

    def compressobj(self, level: int) -> CompressStream: ...


class ZlibCompressor:
    """Default compressor backed by the zlib module."""

    def compressobj(self, level: int) -> CompressStream:
        return zlib.compressobj(level=level)


class IdatWriter:
    """Accumulate filtered scanlines into IDAT payloads.

    Rows are compressed as they arrive. ``close()`` flushes the stream and
    returns the payloads; concatenated they form a single zlib stream.
    """

    def __init__(self, level: int = DEFAULT_COMPRESSION_LEVEL,
                 idat_size: int = DEFAULT_IDAT_SIZE,
                 compressor: Compressor | None = None) -> None:
        self.level = level
        self.idat_size = idat_size
        self._stream = (compressor or ZlibCompressor()).compressobj(level)
        self._compressed = bytearray()
        self.raw_size = 0
        self.closed = False

    def write(self, data: bytes) -> None:
        """Compress one filtered scanline (filter byte included)."""
        if self.closed:
            raise ValueError("IdatWriter is closed")
        self.raw_size += len(data)
        compressed = self._stream.compress(data)
        if compressed:
            self._compressed.extend(compressed)

    def close(self) -> list[bytes]:
        """Flush the compressor and return the IDAT payloads (at least one)."""
        if self.closed:
            raise ValueError("IdatWriter is already closed")
        self._compressed.extend(self._stream.flush())
        self.closed = True

        size = self.idat_size
        payloads = [
            bytes(self._compressed[offset:offset + size])
            for offset in range(0, len(self._compressed), size)
        ]
        logger.debug(
            "Compressed %d bytes to %d at level %d in %d IDAT chunk(s)",
            self.raw_size, len(self._compressed), self.level, len(payloads),
        )
        return payloads or [b""]
