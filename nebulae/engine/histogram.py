"""Three-channel photon-counting histogram shared by all render threads.

A `resolution × resolution × 3` grid of uint32 counters plus a running
maximum (the brightest cell), read later to normalize the image.

Concurrency:
    - bump(): per-cell increment under one of N striped locks (cell index
      modulo N), so concurrent bumps never lose an update
    - maximum: compare-and-retry update; a lock-free read rejects values that
      cannot win, a small lock settles the rest
    - merge(): folds a worker's private partial grid into one channel while
      holding every stripe, then raises the maximum from that channel
    - snapshot(): full copy; may be torn if writers are active (fine for
      previews), consistent once every worker has joined

Numeric limit: counters are uint32 and wrap silently on overflow. A render
that pushes a single pixel past 4 294 967 295 hits is out of range.

Layout: counts[x, y, channel], x from the real part. Flattened in C order this
is the RGB-interleaved, row-major buffer the PNG encoder expects.
"""

import threading
from dataclasses import dataclass

import numpy as np

CHANNELS = 3
COUNTER_DTYPE = np.uint32

_DEFAULT_STRIPES = 64


@dataclass(frozen=True)
class HistogramSnapshot:
    """Copy of the counters and the maximum at one instant."""

    counts: np.ndarray
    maximum: int

    @property
    def flat(self) -> np.ndarray:
        """Counters as a 1-D sequence of resolution² × 3 values."""
        return self.counts.reshape(-1)


class Histogram:
    """Concurrent counting grid with a running maximum.

    Parameters
    ----------
    resolution : int
        Width and height of the grid in pixels
    stripes : int
        Number of striped cell locks used by bump()
    """

    def __init__(self, resolution: int, stripes: int = _DEFAULT_STRIPES):
        if resolution < 1:
            raise ValueError(f"resolution must be >= 1, got {resolution}")
        if stripes < 1:
            raise ValueError(f"stripes must be >= 1, got {stripes}")
        self.resolution = int(resolution)
        self._counts = np.zeros((self.resolution, self.resolution, CHANNELS), dtype=COUNTER_DTYPE)
        self._flat = self._counts.reshape(-1)
        self._maximum = 0
        self._stripes = [threading.Lock() for _ in range(stripes)]
        self._max_lock = threading.Lock()

    @property
    def maximum(self) -> int:
        """Current brightest cell value."""
        return self._maximum

    @property
    def counts(self) -> np.ndarray:
        """Read-only view of the live counters."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    def _cell(self, x: int, y: int, channel: int) -> int:
        if not (0 <= x < self.resolution and 0 <= y < self.resolution):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.resolution}x{self.resolution} grid")
        if not 0 <= channel < CHANNELS:
            raise IndexError(f"Channel {channel} outside [0, {CHANNELS})")
        return (x * self.resolution + y) * CHANNELS + channel

    def bump(self, x: int, y: int, channel: int) -> int:
        """Increment one cell by one; return its new value.

        Safe to call from any number of threads.
        """
        index = self._cell(x, y, channel)
        with self._stripes[index % len(self._stripes)]:
            value = int(self._flat[index]) + 1
            # Explicit wrap instead of numpy's scalar overflow warning
            self._flat[index] = value & 0xFFFFFFFF
        self._raise_maximum(value & 0xFFFFFFFF)
        return value & 0xFFFFFFFF

    def _raise_maximum(self, value: int) -> None:
        if value <= self._maximum:
            return
        with self._max_lock:
            if value > self._maximum:
                self._maximum = value

    def merge(self, channel: int, partial: np.ndarray) -> None:
        """Add a private (resolution, resolution) partial grid into one channel.

        Raises
        ------
        ValueError
            If the partial grid has the wrong shape
        """
        if not 0 <= channel < CHANNELS:
            raise IndexError(f"Channel {channel} outside [0, {CHANNELS})")
        partial = np.asarray(partial)
        expected = (self.resolution, self.resolution)
        if partial.shape != expected:
            raise ValueError(f"Partial histogram shape {partial.shape} != {expected}")

        for lock in self._stripes:
            lock.acquire()
        try:
            target = self._counts[:, :, channel]
            np.add(target, partial.astype(COUNTER_DTYPE, copy=False), out=target, casting='unsafe')
            peak = int(target.max())
        finally:
            for lock in reversed(self._stripes):
                lock.release()
        self._raise_maximum(peak)

    def snapshot(self) -> HistogramSnapshot:
        """Copy of the counters and maximum (may be torn during a pass)."""
        counts = self._counts.copy()
        return HistogramSnapshot(counts=counts, maximum=self._maximum)

    def total(self) -> int:
        """Sum of all counters (diagnostics)."""
        return int(self._counts.sum(dtype=np.uint64))

    def __repr__(self) -> str:
        return f"Histogram({self.resolution}x{self.resolution}x{CHANNELS}, maximum={self._maximum})"
