"""Stochastic Nebulabrot rendering engine.

Modules (leaves first):
    - sampler: jittered 2D samples over the unit square
    - escape: escape-time iteration with full path recording (numba kernel)
    - histogram: concurrent three-channel counting grid with running maximum
    - orchestrator: passes of worker tasks, pass barrier, intermediate snapshots
    - intensity: gamma-curve mapping from counts to 8-bit pixels

Invariants:
    - Only escaping points contribute; bounded orbits are discarded whole
    - Every bump is counted exactly once, whatever the thread interleaving
    - Pass N+1 starts only after every task of pass N has joined
    - Output is stochastic unless a seed is injected

Used by:
    - scripts/render.py: CLI render
    - nebulae.export: intermediate and final PNG writes
"""

from .escape import PathTracer, trace
from .histogram import CHANNELS, Histogram, HistogramSnapshot
from .intensity import map_to_color, to_image
from .orchestrator import (
    NebulabrotRenderer,
    RenderProgress,
    RenderResult,
    RenderState,
    WorkerError,
    render_nebulabrot,
    trace_channel,
)
from .sampler import JitterSampler

__all__ = [
    'CHANNELS',
    'Histogram',
    'HistogramSnapshot',
    'JitterSampler',
    'NebulabrotRenderer',
    'PathTracer',
    'RenderProgress',
    'RenderResult',
    'RenderState',
    'WorkerError',
    'map_to_color',
    'render_nebulabrot',
    'to_image',
    'trace',
    'trace_channel',
]
