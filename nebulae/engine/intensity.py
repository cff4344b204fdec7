"""Histogram → 8-bit display intensities via a gamma curve.

pixel = clamp(0, 255, floor(256 · (count / maximum) ^ curve))

Curves below 1 lift dark areas (the default 0.5 is a square root); any
positive finite exponent is applied as given. An all-zero histogram
(maximum == 0) maps to a black image instead of dividing by zero.
"""

import math

import numpy as np

from .histogram import CHANNELS


def map_to_color(counts: np.ndarray, maximum: int, curve: float) -> np.ndarray:
    """Map raw counts to uint8 intensities.

    Parameters
    ----------
    counts : np.ndarray
        Histogram counters, any shape (flat or (H, W, 3))
    maximum : int
        Normalization value (brightest cell)
    curve : float
        Exponent applied to the normalized counts, > 0

    Returns
    -------
    np.ndarray
        uint8 array with the same shape as counts

    Raises
    ------
    ValueError
        If curve is not a positive finite number
    """
    if not (math.isfinite(curve) and curve > 0.0):
        raise ValueError(f"curve must be a positive finite number, got {curve}")

    counts = np.asarray(counts)
    if maximum <= 0:
        return np.zeros(counts.shape, dtype=np.uint8)

    normalized = counts.astype(np.float64) / float(maximum)
    scaled = np.floor(np.power(normalized, curve) * 256.0)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def to_image(counts: np.ndarray, maximum: int, curve: float, resolution: int) -> np.ndarray:
    """Map counts and shape them as a (resolution, resolution, 3) RGB raster."""
    counts = np.asarray(counts)
    expected = resolution * resolution * CHANNELS
    if counts.size != expected:
        raise ValueError(
            f"Expected {expected} counters for a {resolution}x{resolution} image, got {counts.size}"
        )
    return map_to_color(counts, maximum, curve).reshape(resolution, resolution, CHANNELS)
