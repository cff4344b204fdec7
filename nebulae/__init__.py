"""Nebulae: multi-threaded Nebulabrot renderer.

This package contains the stochastic rendering engine (jittered sampling,
escape-time path tracing, concurrent histogram accumulation, intensity
mapping) and the thin layers around it (YAML configuration, wizard, PNG
export).

Architecture layers (strict one-way dependency):
    scripts/ → nebulae/{export,wizard}.py → nebulae/engine/ → nebulae/utils/

Key invariants:
    - Exactly three channels (red, green, blue), one iteration limit each
    - Histogram counters are uint32, monotonically non-decreasing during a render
    - Plane viewport is [-2, 2]² for projection; samples cover [-2.5, 2.5]²
    - YAML-only configs
    - Output images are 8-bit RGB, same layout as the histogram (row = real axis)
"""

__version__ = "2.0.0"
