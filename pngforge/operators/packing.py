# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Bit/byte packing of scanlines.

Sub-byte samples (1, 2 and 4 bits) are packed most significant bit first
with zero padding at the end of each row. 16-bit samples are written
big-endian. Also holds the 8 <-> 16 bit and 8 <-> n bit sample scaling used
by the colour reducer.
"""

import numpy as np


def bytes_per_pixel(channels: int, bit_depth: int) -> int:
    """Filter distance for a pixel layout (at least 1)."""
    return max(1, (channels * bit_depth) // 8)


def row_bytes(width: int, channels: int, bit_depth: int) -> int:
    return (width * channels * bit_depth + 7) // 8


def widen_8_to_16(samples: np.ndarray) -> np.ndarray:
    """Map 0..255 onto 0..65535 exactly (v * 257)."""
    return samples.astype(np.uint16) * np.uint16(257)


def narrow_16_to_8(samples: np.ndarray) -> np.ndarray:
    """Round 0..65535 to the nearest of 0..255; inverts widen_8_to_16 exactly."""
    return ((samples.astype(np.uint32) + 128) // 257).astype(np.uint8)


def scale_to_depth(samples: np.ndarray, bit_depth: int) -> np.ndarray:
    """Scale 8-bit samples down to 1, 2 or 4 bits, rounding to nearest."""
    if bit_depth >= 8:
        return samples.astype(np.uint8)
    max_value = (1 << bit_depth) - 1
    scaled = (samples.astype(np.uint32) * max_value + 127) // 255
    return scaled.astype(np.uint8)


def scale_from_depth(samples: np.ndarray, bit_depth: int) -> np.ndarray:
    """Inverse of scale_to_depth for values that survived it unchanged."""
    if bit_depth >= 8:
        return samples.astype(np.uint8)
    max_value = (1 << bit_depth) - 1
    return (samples.astype(np.uint32) * 255 // max_value).astype(np.uint8)


def pack_rows(samples: np.ndarray, bit_depth: int) -> np.ndarray:
    """Pack a (height, width, channels) sample grid into scanline bytes.

    Args:
        samples: Integer samples already in the range of ``bit_depth``.
        bit_depth: 1, 2, 4, 8 or 16.

    Returns:
        uint8 array of shape (height, row_bytes).
    """
    height, width, channels = samples.shape
    flat = samples.reshape(height, width * channels)

    if bit_depth == 8:
        return flat.astype(np.uint8)

    if bit_depth == 16:
        big_endian = flat.astype(">u2")
        return big_endian.view(np.uint8).reshape(height, width * channels * 2)

    # Expand every sample into its bits, MSB first, then let packbits pad
    shifts = np.arange(bit_depth - 1, -1, -1, dtype=np.uint8)
    bits = (flat.astype(np.uint8)[:, :, np.newaxis] >> shifts) & 1
    bits = bits.reshape(height, width * channels * bit_depth)
    packed = np.packbits(bits, axis=1)
    return packed.reshape(height, row_bytes(width, channels, bit_depth))


def unpack_rows(data: np.ndarray, width: int, channels: int, bit_depth: int) -> np.ndarray:
    """Inverse of pack_rows; padding bits are discarded.

    Returns:
        (height, width, channels) array, uint16 for 16-bit data, else uint8.
    """
    data = np.asarray(data, dtype=np.uint8)
    height = data.shape[0]
    count = width * channels

    if bit_depth == 8:
        return data[:, :count].reshape(height, width, channels).copy()

    if bit_depth == 16:
        pairs = data[:, :count * 2].reshape(height, count, 2).astype(np.uint16)
        return ((pairs[:, :, 0] << 8) | pairs[:, :, 1]).reshape(height, width, channels)

    bits = np.unpackbits(data, axis=1)[:, :count * bit_depth]
    bits = bits.reshape(height, count, bit_depth).astype(np.uint8)
    weights = (1 << np.arange(bit_depth - 1, -1, -1)).astype(np.uint8)
    values = (bits * weights).sum(axis=2).astype(np.uint8)
    return values.reshape(height, width, channels)
