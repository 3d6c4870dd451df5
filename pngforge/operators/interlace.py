# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Adam7 interlacing.

With Adam7 the frame is split into seven reduced images (passes), each
filtered as an independent image. Pass sub-grids are plain strided numpy
views of the frame, so no pixel is copied until packing.
"""

from typing import Iterator

import numpy as np

from ..core.constants import ADAM7_PASSES, InterlaceMode


def pass_size(width: int, height: int, pass_index: int) -> tuple[int, int]:
    """Width and height of an Adam7 pass (0-based index); either may be 0."""
    x0, y0, dx, dy = ADAM7_PASSES[pass_index]
    pass_width = (width - x0 + dx - 1) // dx if width > x0 else 0
    pass_height = (height - y0 + dy - 1) // dy if height > y0 else 0
    return pass_width, pass_height


def adam7_pass(samples: np.ndarray, pass_index: int) -> np.ndarray:
    x0, y0, dx, dy = ADAM7_PASSES[pass_index]
    return samples[y0::dy, x0::dx]


def iter_passes(samples: np.ndarray, mode: InterlaceMode) -> Iterator[np.ndarray]:
    """Yield the sub-images to be filtered, in stream order.

    NONE yields the whole (height, width, channels) frame once. ADAM7
    yields passes 1 to 7, skipping those with no pixels; an empty pass
    contributes no scanlines at all.
    """
    if mode == InterlaceMode.NONE:
        yield samples
        return

    for pass_index in range(len(ADAM7_PASSES)):
        sub_image = adam7_pass(samples, pass_index)
        if sub_image.shape[0] and sub_image.shape[1]:
            yield sub_image


def deinterlace(passes: list[np.ndarray], width: int, height: int) -> np.ndarray:
    """Reassemble the seven Adam7 passes into a full frame.

    Args:
        passes: Seven arrays in pass order; empty passes may be given as
            arrays with a zero dimension.
    """
    filled = [p for p in passes if p.size]
    channels = filled[0].shape[2] if filled else 1
    dtype = filled[0].dtype if filled else np.uint8
    frame = np.zeros((height, width, channels), dtype=dtype)
    for pass_index, sub_image in enumerate(passes):
        if not sub_image.size:
            continue
        x0, y0, dx, dy = ADAM7_PASSES[pass_index]
        frame[y0::dy, x0::dx] = sub_image
    return frame
