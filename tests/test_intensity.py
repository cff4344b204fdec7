"""Test the count → pixel intensity curve.

Tests for nebulae.engine.intensity:
    - curve = 1 is linear (floor(256·c/max), maximum → 255)
    - curve = 0.5 is a square root
    - maximum = 0 gives a black image of the right length
    - Invalid curves are rejected
    - to_image() reshapes to (res, res, 3)

Test cases:
    - test_linear_curve()
    - test_square_root_curve()
    - test_zero_maximum()
    - test_invalid_curve()
    - test_counts_above_maximum_clamp()
    - test_to_image_shape()
    - test_to_image_size_mismatch()

Run:
    pytest tests/test_intensity.py -v
"""

import math

import numpy as np
import pytest

from nebulae.engine.intensity import map_to_color, to_image


def test_linear_curve():
    """curve 1: 0 → 0, max/2 → 128, max → 255 (clamped from 256)."""
    counts = np.array([0, 50, 100, 1], dtype=np.uint32)
    pixels = map_to_color(counts, 100, 1.0)

    assert pixels.dtype == np.uint8
    assert pixels.tolist() == [0, 128, 255, 2]


def test_square_root_curve():
    """curve 0.5: a quarter of the maximum maps to half brightness."""
    pixels = map_to_color(np.array([1, 4, 0], dtype=np.uint32), 4, 0.5)
    assert pixels.tolist() == [128, 255, 0]


def test_steep_curve():
    """Curves above 1 darken: (1/2)² · 256 = 64."""
    pixels = map_to_color(np.array([2, 4], dtype=np.uint32), 4, 2.0)
    assert pixels.tolist() == [64, 255]


def test_zero_maximum():
    """Empty histogram: all-black output, no division by zero."""
    counts = np.zeros(5 * 5 * 3, dtype=np.uint32)
    pixels = map_to_color(counts, 0, 0.5)

    assert pixels.shape == (75,)
    assert not pixels.any()


def test_shape_preserved():
    counts = np.arange(2 * 2 * 3, dtype=np.uint32).reshape(2, 2, 3)
    assert map_to_color(counts, 11, 1.0).shape == (2, 2, 3)


@pytest.mark.parametrize("curve", [0.0, -0.5, math.nan, math.inf])
def test_invalid_curve(curve):
    """Non-positive or non-finite curves are rejected."""
    with pytest.raises(ValueError, match="curve"):
        map_to_color(np.ones(3, dtype=np.uint32), 1, curve)


def test_counts_above_maximum_clamp():
    """A torn snapshot may hold counts above its maximum; they saturate."""
    pixels = map_to_color(np.array([10, 20], dtype=np.uint32), 10, 0.5)
    assert pixels.tolist() == [255, 255]


def test_monotone():
    """Brighter counts never map to darker pixels."""
    counts = np.arange(1_000, dtype=np.uint32)
    pixels = map_to_color(counts, 999, 0.5).astype(int)
    assert np.all(np.diff(pixels) >= 0)


def test_to_image_shape():
    """Flat RGB-interleaved counters become a (res, res, 3) raster."""
    res = 3
    counts = np.zeros(res * res * 3, dtype=np.uint32)
    counts[(1 * res + 2) * 3 + 1] = 7
    image = to_image(counts, 7, 1.0, res)

    assert image.shape == (3, 3, 3)
    assert image[1, 2, 1] == 255
    assert image.sum() == 255


def test_to_image_size_mismatch():
    with pytest.raises(ValueError, match="Expected 27"):
        to_image(np.zeros(10, dtype=np.uint32), 1, 1.0, 3)
