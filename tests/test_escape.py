"""Test escape-time iteration with trajectory recording.

Tests for nebulae.engine.escape:
    - Hand-computed orbits (escaping, periodic, fixed point)
    - Strict escape test on the final iterate (|z| = 2 is not escaped)
    - Early stop at the stop radius
    - Limit 0, negative limit, non-finite c
    - PathTracer buffer reuse vs. owned arrays from trace()

Test cases:
    - test_escaping_orbit_exact_points()
    - test_limit_zero()
    - test_origin_never_escapes()
    - test_period_two_orbit()
    - test_boundary_magnitude_not_escaped()
    - test_stop_radius_ends_iteration()
    - test_nan_parameter()
    - test_negative_limit_rejected()
    - test_tracer_reuses_buffer()

Run:
    pytest tests/test_escape.py -v
"""

import math

import numpy as np
import pytest

from nebulae.engine.escape import ESCAPE_RADIUS, STOP_RADIUS, PathTracer, trace


# ============================================================================
# HAND-COMPUTED ORBITS
# ============================================================================

def test_escaping_orbit_exact_points():
    """c = 2+2i: z1 = 2+2i, z2 = (2+2i)² + c = 2+10i, then |z| >= 3 stops."""
    path, escaped = trace(2 + 2j, 10)

    assert escaped
    assert path.tolist() == [2 + 2j, 2 + 10j]


def test_escaping_orbit_limit_one():
    """Limit 1 records only z1; |z1|² = 8 > 4 is already escaped."""
    path, escaped = trace(2 + 2j, 1)

    assert escaped
    assert path.tolist() == [2 + 2j]


def test_real_axis_escape():
    """c = 1: 1, 2, 5 and stop."""
    path, escaped = trace(1 + 0j, 100)

    assert escaped
    assert path.tolist() == [1, 2, 5]


def test_limit_zero():
    """No iterations: empty path, z stays 0, not escaped."""
    path, escaped = trace(2 + 2j, 0)

    assert len(path) == 0
    assert not escaped


def test_origin_never_escapes():
    """c = 0 is a fixed point: L zeros."""
    path, escaped = trace(0j, 25)

    assert not escaped
    assert len(path) == 25
    assert np.all(path == 0)


def test_period_two_orbit():
    """c = -1 cycles -1, 0, -1, 0, ..."""
    path, escaped = trace(-1 + 0j, 5)

    assert not escaped
    assert path.tolist() == [-1, 0, -1, 0, -1]


# ============================================================================
# BOUNDARY SEMANTICS
# ============================================================================

def test_boundary_magnitude_not_escaped():
    """c = 1 with limit 2 ends on z = 2: |z|² = 4 is not > 4."""
    path, escaped = trace(1 + 0j, 2)

    assert path.tolist() == [1, 2]
    assert not escaped


def test_tip_of_the_set_bounded():
    """c = -2 settles on z = 2 forever and never escapes."""
    path, escaped = trace(-2 + 0j, 6)

    assert not escaped
    assert path.tolist() == [-2, 2, 2, 2, 2, 2]


def test_stop_radius_ends_iteration():
    """Iteration stops as soon as |z| >= stop, well before the limit."""
    path, escaped = trace(0.5 + 0j, 1_000)

    assert escaped
    assert abs(path[-1]) >= STOP_RADIUS
    assert all(abs(z) < STOP_RADIUS for z in path[:-1])
    assert len(path) < 1_000


def test_custom_radii():
    """Escape and stop radii are parameters."""
    # 1, 2, 5, 26: stops once |z| >= 10
    path, escaped = trace(1 + 0j, 100, escape=20.0, stop=10.0)
    assert path.tolist() == [1, 2, 5, 26]
    assert escaped


def test_initial_iterate():
    """Iteration can start from a non-zero z0."""
    path, escaped = trace(0j, 3, z0=1 + 0j)
    assert path.tolist() == [1, 1, 1]
    assert not escaped


def test_nan_parameter():
    """A NaN parameter fails the stop check after one step and never escapes."""
    path, escaped = trace(complex(math.nan, 0.0), 10)

    assert len(path) == 1
    assert not escaped


def test_negative_limit_rejected():
    """Negative limits are rejected."""
    with pytest.raises(ValueError, match="limit"):
        trace(0j, -1)


def test_default_radii():
    assert ESCAPE_RADIUS == 2.0
    assert STOP_RADIUS == 3.0


# ============================================================================
# BUFFER OWNERSHIP
# ============================================================================

def test_tracer_reuses_buffer():
    """PathTracer returns views into one buffer; the next call overwrites it."""
    tracer = PathTracer(10)
    first, _ = tracer.trace(2 + 2j)
    kept = first.copy()
    tracer.trace(1 + 0j)

    assert np.shares_memory(first, tracer.trace(0j)[0])
    assert kept.tolist() == [2 + 2j, 2 + 10j]


def test_trace_returns_owned_arrays():
    """trace() results are independent of each other."""
    a, _ = trace(2 + 2j, 10)
    b, _ = trace(1 + 0j, 10)

    assert not np.shares_memory(a, b)
    assert a.tolist() == [2 + 2j, 2 + 10j]
    assert a.dtype == np.complex128
