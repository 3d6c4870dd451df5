# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

# Scanline Filter Engine
#
# Implements the five PNG filter types (ISO/IEC 15948 section 9) over packed
# scanline bytes, plus the adaptive per-row selection. Arithmetic is modulo
# 256 per byte. "a" is the byte bpp positions to the left, "b" the byte
# above and "c" the byte above-left, all taken from unfiltered data; bytes
# outside the image read as zero.

from typing import Iterator

import numpy as np

from ..core.constants import FILTER_TYPES, FilterMethod


def paeth_predictor(a: int, b: int, c: int) -> int:
    """PNG Paeth predictor function as defined for PNG."""
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    elif pb <= pc:
        return b
    else:
        return c


def _left(values: np.ndarray, bpp: int) -> np.ndarray:
    shifted = np.zeros_like(values)
    shifted[bpp:] = values[:len(values) - bpp] if len(values) > bpp else values[:0]
    return shifted


def filter_none(row: np.ndarray, prior: np.ndarray, bpp: int) -> np.ndarray:
    return row.astype(np.uint8, copy=True)


def filter_sub(row: np.ndarray, prior: np.ndarray, bpp: int) -> np.ndarray:
    # Sub: Filt(x) = Orig(x) - Orig(a)
    x = row.astype(np.int16)
    return ((x - _left(x, bpp)) & 0xFF).astype(np.uint8)


def filter_up(row: np.ndarray, prior: np.ndarray, bpp: int) -> np.ndarray:
    # Up: Filt(x) = Orig(x) - Orig(b)
    x = row.astype(np.int16)
    return ((x - prior.astype(np.int16)) & 0xFF).astype(np.uint8)


def filter_average(row: np.ndarray, prior: np.ndarray, bpp: int) -> np.ndarray:
    # Average: Filt(x) = Orig(x) - floor((Orig(a) + Orig(b)) / 2)
    x = row.astype(np.int16)
    a = _left(x, bpp)
    b = prior.astype(np.int16)
    return ((x - ((a + b) >> 1)) & 0xFF).astype(np.uint8)


def filter_paeth(row: np.ndarray, prior: np.ndarray, bpp: int) -> np.ndarray:
    # Paeth: Filt(x) = Orig(x) - PaethPredictor(Orig(a), Orig(b), Orig(c))
    x = row.astype(np.int16)
    a = _left(x, bpp)
    b = prior.astype(np.int16)
    c = _left(b, bpp)
    pa = np.abs(b - c)
    pb = np.abs(a - c)
    pc = np.abs(a + b - 2 * c)
    predicted = np.where((pa <= pb) & (pa <= pc), a, np.where(pb <= pc, b, c))
    return ((x - predicted) & 0xFF).astype(np.uint8)


FILTERS = {
    FilterMethod.NONE: filter_none,
    FilterMethod.SUB: filter_sub,
    FilterMethod.UP: filter_up,
    FilterMethod.AVERAGE: filter_average,
    FilterMethod.PAETH: filter_paeth,
}


def filter_cost(filtered: np.ndarray) -> int:
    """Sum of absolute values of the bytes read as signed (-128..127)."""
    return int(np.abs(filtered.view(np.int8).astype(np.int32)).sum())


def select_filter(row: np.ndarray, prior: np.ndarray, bpp: int) -> tuple[FilterMethod, np.ndarray]:
    """Pick the filter with the lowest cost for one row.

    Candidates are tried in FILTER_TYPES order and only a strictly lower
    cost replaces the current best, so ties go to the earlier filter.
    """
    best_type = FilterMethod.NONE
    best_row = None
    best_cost = None
    for filter_type in FILTER_TYPES:
        candidate = FILTERS[filter_type](row, prior, bpp)
        cost = filter_cost(candidate)
        if best_cost is None or cost < best_cost:
            best_type, best_row, best_cost = filter_type, candidate, cost
    return best_type, best_row


def filter_row(row: np.ndarray, prior: np.ndarray, bpp: int,
               method: FilterMethod) -> tuple[FilterMethod, np.ndarray]:
    """Filter one row with a fixed method, or adaptively."""
    if method == FilterMethod.ADAPTIVE:
        return select_filter(row, prior, bpp)
    return method, FILTERS[method](row, prior, bpp)


def filter_scanlines(rows: np.ndarray, bpp: int, method: FilterMethod) -> Iterator[bytes]:
    """Yield the filtered scanlines of one pass.

    Args:
        rows: (height, row_bytes) uint8 array of packed, unfiltered rows.
        bpp: Bytes per complete pixel (minimum 1).
        method: Fixed filter or ADAPTIVE.

    Yields:
        One bytes object per row: filter-type byte followed by the row.
    """
    rows = np.asarray(rows, dtype=np.uint8)
    prior = np.zeros(rows.shape[1] if rows.ndim == 2 else 0, dtype=np.uint8)
    for row in rows:
        filter_type, filtered = filter_row(row, prior, bpp, method)
        yield bytes((int(filter_type),)) + filtered.tobytes()
        prior = row
