# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Reduced frame: the per-encode pixel data in the exact sample layout of the
target colour type, plus its optional palette and transparency record.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .constants import CHANNEL_COUNT, BitDepth, ColorType


@dataclass(frozen=True)
class Palette:
    """Ordered palette; an entry's position is its index.

    Entries are (r, g, b, a) tuples of 8-bit values.
    """

    entries: tuple[tuple[int, int, int, int], ...]

    def __len__(self) -> int:
        return len(self.entries)

    def rgb_bytes(self) -> bytes:
        """PLTE payload: three bytes per entry."""
        return bytes(value for r, g, b, _ in self.entries for value in (r, g, b))

    def alpha_bytes(self) -> bytes | None:
        """tRNS payload for a palette image.

        Trailing fully opaque entries are omitted; None when every entry
        is opaque.
        """
        alphas = [a for _, _, _, a in self.entries]
        while alphas and alphas[-1] == 255:
            alphas.pop()
        return bytes(alphas) if alphas else None

    @property
    def transparent_index(self) -> int | None:
        """Index of the first fully transparent entry, if any."""
        for index, (_, _, _, a) in enumerate(self.entries):
            if a == 0:
                return index
        return None


@dataclass(frozen=True)
class Transparency:
    """Single-colour transparency key for GRAYSCALE or RGB frames.

    ``value`` holds one sample (gray) or three (rgb) at the frame's bit depth.
    """

    kind: str
    value: tuple[int, ...]


@dataclass
class ReducedFrame:
    width: int
    height: int
    color_type: ColorType
    bit_depth: BitDepth
    samples: np.ndarray
    palette: Palette | None = None
    transparency: Transparency | None = None

    @property
    def channels(self) -> int:
        return CHANNEL_COUNT[self.color_type]

    @property
    def bits_per_pixel(self) -> int:
        return self.channels * int(self.bit_depth)

    @property
    def bytes_per_pixel(self) -> int:
        """Filter distance in bytes; 1 for sub-byte pixels."""
        return max(1, self.bits_per_pixel // 8)

    def row_bytes(self, width: int | None = None) -> int:
        if width is None:
            width = self.width
        return (width * self.bits_per_pixel + 7) // 8
