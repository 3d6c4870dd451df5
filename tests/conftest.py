"""
Global fixtures live here

Test images come from patterns.py; PNG output is checked with the
independent decoder in reference_decoder.py.
"""
import pytest

from patterns import gray_pattern, rgba_pattern
from reference_decoder import decode


@pytest.fixture
def rgba_image():
    """47x13 RGBA32 image; odd sizes exercise row padding and partial Adam7 passes."""
    return rgba_pattern(47, 13)


@pytest.fixture
def rgb_image():
    return rgba_pattern(47, 13, alpha=False)


@pytest.fixture
def gray_image():
    return gray_pattern(31, 9)


@pytest.fixture
def decode_png():
    """Decode PNG bytes with the reference decoder."""
    return decode
