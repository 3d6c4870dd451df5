# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Palette quantizers.

A quantizer maps a SourceImage to one palette index per pixel plus a
palette of at most ``palette_size`` RGBA entries. When the image has no more
distinct colours than that, every quantizer here returns those colours
exactly, ordered by first appearance in row-major order. Beyond that,
PillowQuantizer delegates to Pillow's ``Image.quantize`` and is lossy but
deterministic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from PIL import Image

from ..core.constants import MAX_PALETTE_SIZE
from ..core.error import QuantizationError
from ..core.frame import Palette
from ..core.image import SourceImage
from .packing import narrow_16_to_8

logger = logging.getLogger(__name__)

# Pillow methods that accept RGBA input
RGBA_METHODS = (Image.Quantize.FASTOCTREE, Image.Quantize.LIBIMAGEQUANT)


@dataclass(frozen=True)
class QuantizeResult:
    indices: np.ndarray          # (height, width) uint8
    palette: Palette

    @property
    def transparent_index(self) -> int | None:
        return self.palette.transparent_index


class Quantizer(Protocol):
    def quantize(self, image: SourceImage, palette_size: int) -> QuantizeResult: ...


def _check_palette_size(palette_size: int) -> None:
    if not 1 <= palette_size <= MAX_PALETTE_SIZE:
        raise QuantizationError(
            f"Palette size must be between 1 and {MAX_PALETTE_SIZE}, got {palette_size}"
        )


def rgba8(image: SourceImage) -> np.ndarray:
    """The image as a contiguous (height, width, 4) uint8 RGBA array."""
    return np.ascontiguousarray(narrow_16_to_8(image.rgba16()))


def exact_palette(pixels: np.ndarray, palette_size: int) -> QuantizeResult | None:
    """Lossless palette for an RGBA8 array, or None if it does not fit.

    Entries are ordered by the first pixel (row-major) that uses them.
    """
    height, width = pixels.shape[:2]
    flat = np.ascontiguousarray(pixels, dtype=np.uint8).reshape(-1, 4)
    keys = flat.view(np.uint32).reshape(-1)
    unique, first_seen, inverse = np.unique(keys, return_index=True, return_inverse=True)
    if len(unique) > palette_size:
        return None

    order = np.argsort(first_seen, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))
    indices = rank[inverse.reshape(-1)].reshape(height, width).astype(np.uint8)
    entries = tuple(tuple(int(v) for v in flat[first_seen[i]]) for i in order)
    return QuantizeResult(indices, Palette(entries))


def palette_from_labels(pixels: np.ndarray, labels: np.ndarray) -> QuantizeResult:
    """Build a palette from a per-pixel cluster assignment.

    Each entry is the rounded mean colour of the pixels assigned to it.
    Labels nobody uses are dropped and the rest renumbered in label order.
    """
    height, width = pixels.shape[:2]
    flat = pixels.reshape(-1, 4).astype(np.float64)
    used, compact = np.unique(labels.reshape(-1), return_inverse=True)
    compact = compact.reshape(-1)
    counts = np.bincount(compact, minlength=len(used)).astype(np.float64)

    means = np.empty((len(used), 4), dtype=np.float64)
    for channel in range(4):
        means[:, channel] = np.bincount(compact, weights=flat[:, channel], minlength=len(used))
    means = np.rint(means / counts[:, np.newaxis]).astype(np.uint8)

    entries = tuple(tuple(int(v) for v in row) for row in means)
    indices = compact.reshape(height, width).astype(np.uint8)
    return QuantizeResult(indices, Palette(entries))


class ExactQuantizer:
    """Lossless quantizer; fails if the image has too many colours."""

    def quantize(self, image: SourceImage, palette_size: int) -> QuantizeResult:
        _check_palette_size(palette_size)
        result = exact_palette(rgba8(image), palette_size)
        if result is None:
            raise QuantizationError(
                f"Image has more than {palette_size} distinct colors"
            )
        return result

    def __repr__(self) -> str:
        return "ExactQuantizer()"


class PillowQuantizer:
    """Quantizer backed by Pillow's ``Image.quantize``.

    Args:
        method: A ``PIL.Image.Quantize`` member. Defaults to median cut for
            opaque images and fast octree when any pixel is translucent.
            Only RGBA_METHODS work on translucent images.
        dither: Apply Floyd-Steinberg dithering when mapping pixels.
    """

    def __init__(self, method: Image.Quantize | None = None, dither: bool = False) -> None:
        self.method = method
        self.dither = dither

    def __repr__(self) -> str:
        method = self.method.name if self.method is not None else None
        return f"PillowQuantizer(method={method}, dither={self.dither})"

    def quantize(self, image: SourceImage, palette_size: int) -> QuantizeResult:
        _check_palette_size(palette_size)
        pixels = rgba8(image)

        result = exact_palette(pixels, palette_size)
        if result is not None:
            logger.debug("Exact palette of %d colors", len(result.palette))
            return result

        translucent = bool((pixels[:, :, 3] != 255).any())
        if translucent:
            if self.method is not None and self.method not in RGBA_METHODS:
                raise QuantizationError(
                    f"{self.method.name} cannot quantize images with alpha; "
                    f"use one of {', '.join(m.name for m in RGBA_METHODS)}"
                )
            source = Image.fromarray(pixels)
            method = self.method if self.method is not None else Image.Quantize.FASTOCTREE
        else:
            source = Image.fromarray(np.ascontiguousarray(pixels[:, :, :3]))
            method = self.method if self.method is not None else Image.Quantize.MEDIANCUT

        dither = Image.Dither.FLOYDSTEINBERG if self.dither else Image.Dither.NONE
        quantized = source.quantize(colors=palette_size, method=method, dither=dither)
        labels = np.asarray(quantized, dtype=np.uint8)

        result = palette_from_labels(pixels, labels)
        if len(result.palette) > palette_size:
            raise QuantizationError(
                f"Quantizer produced {len(result.palette)} colors, requested {palette_size}"
            )
        logger.debug(
            "Quantized with %s to %d of %d requested colors",
            method.name, len(result.palette), palette_size,
        )
        return result
