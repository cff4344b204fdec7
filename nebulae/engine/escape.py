"""Escape-time iteration that also records the visited trajectory.

A slightly modified Mandelbrot iteration: on top of classifying whether the
parameter c escapes within the iteration limit, it returns every iterate
z₁, z₂, … it passed through. The Nebulabrot histograms those paths.

Semantics:
    - z ← z² + c, at most `limit` times, every post-iteration z recorded
    - the loop stops early once |z|² >= stop² (checked before each step)
    - escaped = |z_final|² > escape² (strict)
    - squared magnitudes only; no square root per iteration
    - 64-bit floats; NaN/inf from a non-finite c simply fail the bound check

The kernel is compiled by numba in nopython mode with the GIL released, so
tracer threads run truly in parallel.
"""

from typing import Tuple

import numpy as np
from numba import njit

ESCAPE_RADIUS = 2.0
STOP_RADIUS = 3.0


@njit(cache=True, nogil=True)
def _iterate_into(path, z_re, z_im, c_re, c_im, limit, escape, stop):
    """Iterate into `path`; return (recorded length, escaped)."""
    escape_squared = escape * escape
    stop_squared = stop * stop

    z2_re = z_re * z_re
    z2_im = z_im * z_im

    n = 0
    while n < limit and z2_re + z2_im < stop_squared:
        z_im = 2.0 * z_re * z_im + c_im
        z_re = z2_re - z2_im + c_re

        z2_re = z_re * z_re
        z2_im = z_im * z_im

        path[n] = complex(z_re, z_im)
        n += 1

    return n, z2_re + z2_im > escape_squared


class PathTracer:
    """Reusable tracer owning one trajectory buffer of `limit` points.

    The array returned by trace() is a view into that buffer and is only
    valid until the next call; copy it to keep it.

    Parameters
    ----------
    limit : int
        Iteration limit (>= 0)
    escape : float
        Escape radius used for the final classification
    stop : float
        Radius at which iteration stops early
    """

    def __init__(self, limit: int, escape: float = ESCAPE_RADIUS, stop: float = STOP_RADIUS):
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        self.limit = int(limit)
        self.escape = float(escape)
        self.stop = float(stop)
        self._buffer = np.empty(self.limit, dtype=np.complex128)

    def trace(self, c: complex, z0: complex = 0j) -> Tuple[np.ndarray, bool]:
        """Iterate from z0 with parameter c; return (trajectory view, escaped)."""
        n, escaped = _iterate_into(
            self._buffer,
            float(z0.real), float(z0.imag),
            float(c.real), float(c.imag),
            self.limit, self.escape, self.stop,
        )
        return self._buffer[:n], bool(escaped)


def trace(
    c: complex,
    limit: int,
    z0: complex = 0j,
    escape: float = ESCAPE_RADIUS,
    stop: float = STOP_RADIUS
) -> Tuple[np.ndarray, bool]:
    """Iterated Mandelbrot map that also returns the points traversed.

    Parameters
    ----------
    c : complex
        Parameter of the map z ← z² + c
    limit : int
        Maximum number of iterations (>= 0)
    z0 : complex
        Initial iterate, default 0
    escape : float
        Escape radius E; escaped means |z_final| > E
    stop : float
        Stop radius S; iteration ends once |z| >= S

    Returns
    -------
    trajectory : np.ndarray
        complex128 array (owned by the caller), one entry per iteration run
    escaped : bool
        Whether the final iterate lies outside the escape radius

    Examples
    --------
    >>> path, escaped = trace(2 + 2j, 10)
    >>> escaped, len(path)
    (True, 2)
    """
    return PathTracer(limit, escape, stop).trace(c, z0)
