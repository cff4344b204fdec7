"""Numerics: sample ↔ plane ↔ pixel coordinate conversions.

Core utilities:
    - sample_to_plane(): unit-square sample → complex parameter c
    - value_to_index(): scalar projection of one plane coordinate onto a pixel axis
    - values_to_indices(): vectorized projection with a validity mask
    - plane_to_pixels(): project a trajectory onto (row, col) pixel indices

Invariants:
    - Samples live in [0, 1)² and map linearly onto [-2.5, 2.5]²
    - The projected viewport is [-2, 2]² on both axes
    - Row index comes from the real part, column index from the imaginary part
    - Points outside the viewport (or non-finite) are dropped, never clamped

Projection rule (per axis, bound [lo, hi], `size` pixels):
    lo == hi            → no pixel
    interp = (v - lo) / (hi - lo)
    index  = floor(size * interp), kept iff interp >= 0 and index < size
"""

import math
from typing import Optional, Tuple

import numpy as np

# Plane window projected onto the image
VIEWPORT: Tuple[float, float] = (-2.0, 2.0)

# Unit square → [-2.5, 2.5]²: the set plus its immediate escape basin
SAMPLE_SPAN = 5.0
SAMPLE_OFFSET = 2.5


def sample_to_plane(x: float, y: float) -> complex:
    """Map a sample point in [0, 1)² to the complex parameter c."""
    return complex(x * SAMPLE_SPAN - SAMPLE_OFFSET, y * SAMPLE_SPAN - SAMPLE_OFFSET)


def value_to_index(value: float, lo: float, hi: float, size: int) -> Optional[int]:
    """Project one plane coordinate onto a pixel axis.

    Parameters
    ----------
    value : float
        Plane coordinate (real or imaginary part)
    lo, hi : float
        Plane bounds mapped onto the pixel range
    size : int
        Number of pixels along the axis

    Returns
    -------
    Optional[int]
        Pixel index in [0, size), or None if the value falls outside the
        viewport, is not finite, or the bounds are degenerate

    Examples
    --------
    >>> value_to_index(-2.0, -2.0, 2.0, 100)
    0
    >>> value_to_index(2.0, -2.0, 2.0, 100) is None
    True
    """
    if lo == hi:
        return None
    interp = (value - lo) / (hi - lo)
    # NaN fails both comparisons
    if not interp >= 0.0:
        return None
    scaled = size * interp
    if not scaled < size:
        return None
    return int(math.floor(scaled))


def values_to_indices(
    values: np.ndarray,
    lo: float,
    hi: float,
    size: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorized value_to_index().

    Returns
    -------
    indices : np.ndarray
        intp array, same shape as values (0 where invalid)
    valid : np.ndarray
        bool mask of values that resolved to a pixel
    """
    values = np.asarray(values, dtype=np.float64)
    if lo == hi:
        return np.zeros(values.shape, dtype=np.intp), np.zeros(values.shape, dtype=bool)

    with np.errstate(invalid='ignore', over='ignore'):
        interp = (values - lo) / (hi - lo)
        scaled = np.floor(size * interp)
        valid = (interp >= 0.0) & (scaled < size)

    indices = np.where(valid, scaled, 0.0).astype(np.intp)
    return indices, valid


def plane_to_pixels(
    points: np.ndarray,
    size: int,
    bounds: Tuple[float, float] = VIEWPORT
) -> Tuple[np.ndarray, np.ndarray]:
    """Project complex trajectory points onto pixel indices.

    Parameters
    ----------
    points : np.ndarray
        complex128 array of plane points
    size : int
        Image resolution (square)
    bounds : Tuple[float, float]
        Plane bounds used on both axes, default [-2, 2]

    Returns
    -------
    rows, cols : np.ndarray
        intp arrays of equal length holding only the points that landed
        inside the viewport on both axes
    """
    points = np.asarray(points, dtype=np.complex128)
    lo, hi = bounds
    rows, rows_ok = values_to_indices(points.real, lo, hi, size)
    cols, cols_ok = values_to_indices(points.imag, lo, hi, size)
    keep = rows_ok & cols_ok
    return rows[keep], cols[keep]
