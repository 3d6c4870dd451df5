# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Colour-type reduction.

Turns a SourceImage into a ReducedFrame whose samples have exactly the
layout of the target colour type and bit depth:

  GRAYSCALE             L          1, 2, 4, 8 or 16 bits
  GRAYSCALE_WITH_ALPHA  L, A       8 or 16 bits
  RGB                   R, G, B    8 or 16 bits
  RGB_WITH_ALPHA        R, G, B, A 8 or 16 bits
  PALETTE               index      1, 2, 4 or 8 bits, plus palette

All work happens on 16-bit normalized channels read through
``SourceImage.channel``, so the reducer does not care about the source's
memory layout. GRAYSCALE and RGB frames may carry a single-colour
transparency key in place of the dropped alpha channel.
"""

from __future__ import annotations

import logging

import numpy as np

from ..core.config import EncoderConfig
from ..core.constants import ColorType
from ..core.error import ConfigurationError, QuantizationError
from ..core.frame import ReducedFrame, Transparency
from ..core.image import ImageMetadata, PixelFormat, SourceImage
from .packing import narrow_16_to_8, scale_to_depth
from .quantize import PillowQuantizer, QuantizeResult

logger = logging.getLogger(__name__)

# ITU-R BT.709 luma coefficients
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722


def luminance16(image: SourceImage) -> np.ndarray:
    """Gray level of every pixel as uint16; gray sources pass through."""
    if image.is_grayscale:
        return image.channel("L")
    r, g, b = (image.channel(name).astype(np.float64) for name in "RGB")
    luma = LUMA_R * r + LUMA_G * g + LUMA_B * b
    return np.clip(np.rint(luma), 0, 0xFFFF).astype(np.uint16)


def to_depth(samples16: np.ndarray, bit_depth: int) -> np.ndarray:
    """Convert 16-bit normalized samples to the target bit depth."""
    if bit_depth == 16:
        return samples16.astype(np.uint16)
    samples8 = narrow_16_to_8(samples16)
    if bit_depth == 8:
        return samples8
    return scale_to_depth(samples8, bit_depth)


def _key_to_depth(value16: int, bit_depth: int) -> int:
    return int(to_depth(np.array([value16], dtype=np.uint16), bit_depth)[0])


def _declared_keys16(meta: ImageMetadata) -> tuple[int | None, tuple[int, ...] | None]:
    gray16 = None
    if meta.transparent_l16 is not None:
        gray16 = int(meta.transparent_l16)
    elif meta.transparent_l8 is not None:
        gray16 = int(meta.transparent_l8) * 257

    rgb16 = None
    if meta.transparent_rgb48 is not None:
        rgb16 = tuple(int(v) for v in meta.transparent_rgb48)
    elif meta.transparent_rgb24 is not None:
        rgb16 = tuple(int(v) * 257 for v in meta.transparent_rgb24)
    return gray16, rgb16


def declared_key(image: SourceImage, color_type: ColorType, bit_depth: int) -> Transparency | None:
    """Transparency key declared in the source metadata, at the target depth."""
    gray16, rgb16 = _declared_keys16(image.metadata)

    if color_type == ColorType.GRAYSCALE:
        if gray16 is None and rgb16 is not None and len(set(rgb16)) == 1:
            gray16 = rgb16[0]
        if gray16 is not None:
            return Transparency("gray", (_key_to_depth(gray16, bit_depth),))
    elif color_type == ColorType.RGB:
        if rgb16 is None and gray16 is not None:
            rgb16 = (gray16,) * 3
        if rgb16 is not None:
            return Transparency("rgb", tuple(_key_to_depth(v, bit_depth) for v in rgb16))
    return None


def apply_declared_key(image: SourceImage) -> SourceImage:
    """Make pixels matching a declared key fully transparent.

    Returns an RGBA64 copy with alpha 0 on every pixel equal to the key, or
    the image itself when it has an alpha channel, declares no key or no
    pixel matches.
    """
    if image.has_alpha or not image.metadata.has_transparency:
        return image
    gray16, rgb16 = _declared_keys16(image.metadata)
    if rgb16 is None:
        rgb16 = (gray16,) * 3

    rgba = image.rgba16()
    matches = (rgba[:, :, :3] == np.array(rgb16, dtype=np.uint16)).all(axis=2)
    if not matches.any():
        return image
    rgba[:, :, 3][matches] = 0
    return SourceImage.from_array(rgba, PixelFormat.RGBA64, image.metadata)


def detect_key(image: SourceImage, samples: np.ndarray, kind: str) -> Transparency | None:
    """Find a transparency key implied by the source alpha channel.

    A key exists when every fully transparent pixel reduces to the same
    value and no pixel with any opacity reduces to that value.
    """
    if not image.has_alpha:
        return None
    transparent = image.channel("A") == 0
    if not transparent.any():
        return None

    hidden = samples[transparent]
    candidate = hidden[0]
    if not (hidden == candidate).all():
        return None
    visible = samples[~transparent]
    if visible.size and (visible == candidate).all(axis=1).any():
        return None
    return Transparency(kind, tuple(int(v) for v in candidate))


def check_quantize_result(result: QuantizeResult, image: SourceImage, palette_size: int) -> None:
    """Validate a quantizer's output against its contract."""
    count = len(result.palette)
    if not 1 <= count <= palette_size:
        raise QuantizationError(
            f"Quantizer returned {count} palette entries for a palette size of {palette_size}"
        )
    if result.indices.shape != (image.height, image.width):
        raise QuantizationError(
            f"Quantizer index buffer has shape {result.indices.shape}, "
            f"expected {(image.height, image.width)}"
        )
    if result.indices.size and int(result.indices.max()) >= count:
        raise QuantizationError("Quantizer index buffer refers past the end of the palette")


def reduce_frame(image: SourceImage, config: EncoderConfig) -> ReducedFrame:
    """Reduce the source image to the configured colour type and depth.

    Args:
        image: Source image; never modified.
        config: A resolved configuration (colour type and bit depth set).

    Returns:
        ReducedFrame holding samples in the range of the bit depth.

    Raises:
        ConfigurationError: unresolved configuration or a palette deeper
            than 8 bits.
        QuantizationError: the quantizer broke its contract.
    """
    if not config.is_resolved:
        raise ConfigurationError("Configuration must be resolved against the image before reduction")

    color_type = config.color_type
    bit_depth = int(config.bit_depth)
    palette = None
    transparency = None

    if color_type == ColorType.PALETTE:
        if bit_depth > 8:
            raise ConfigurationError(f"Palette images cannot use {bit_depth}-bit samples")
        palette_size = config.effective_palette_size
        quantizer = config.quantizer if config.quantizer is not None else PillowQuantizer()
        result = quantizer.quantize(apply_declared_key(image), palette_size)
        check_quantize_result(result, image, palette_size)
        samples = result.indices.astype(np.uint8)[:, :, np.newaxis]
        palette = result.palette
        logger.debug("Palette of %d entries (requested %d)", len(palette), palette_size)

    elif color_type == ColorType.GRAYSCALE:
        samples = to_depth(luminance16(image), bit_depth)[:, :, np.newaxis]
        transparency = declared_key(image, color_type, bit_depth)
        if transparency is None:
            transparency = detect_key(image, samples, "gray")

    elif color_type == ColorType.GRAYSCALE_WITH_ALPHA:
        channels = [luminance16(image), image.channel("A")]
        samples = np.stack([to_depth(c, bit_depth) for c in channels], axis=-1)

    elif color_type == ColorType.RGB:
        samples = np.stack([to_depth(image.channel(c), bit_depth) for c in "RGB"], axis=-1)
        transparency = declared_key(image, color_type, bit_depth)
        if transparency is None:
            transparency = detect_key(image, samples, "rgb")

    else:
        samples = np.stack([to_depth(image.channel(c), bit_depth) for c in "RGBA"], axis=-1)

    if transparency is not None:
        logger.debug("Transparency key %s", transparency.value)

    return ReducedFrame(
        width=image.width,
        height=image.height,
        color_type=color_type,
        bit_depth=config.bit_depth,
        samples=samples,
        palette=palette,
        transparency=transparency,
    )
