"""Jittered (stratified) random sampling over the unit square.

Jittered sampling divides the square into k×k equal cells and draws one
uniform point inside each, which spreads samples out and avoids the clumping
of pure uniform sampling. It gives fewer guarantees than blue-noise or
Poisson-disk sampling, but costs one generator draw per coordinate.

When the requested count n is not a perfect square, the n - k² excess samples
are drawn uniformly over the whole square, with no stratification.

Each sampler owns an independent numpy Generator and is a one-shot iterator:
create a fresh instance to resample.
"""

import math
from typing import Optional, Tuple, Union

import numpy as np

SeedLike = Union[None, int, np.random.SeedSequence]


class JitterSampler:
    """Iterator over `samples` jittered 2D points in [0, 1)².

    Parameters
    ----------
    samples : int
        Number of points to emit (>= 0)
    seed : None, int or np.random.SeedSequence
        Seed for this sampler's private generator; None draws fresh entropy

    Examples
    --------
    >>> sampler = JitterSampler(1_000).shuffle()
    >>> for x, y in sampler:
    ...     c = complex(x * 5.0 - 2.5, y * 5.0 - 2.5)
    """

    def __init__(self, samples: int, seed: SeedLike = None):
        if samples < 0:
            raise ValueError(f"samples must be >= 0, got {samples}")
        self.samples = int(samples)
        self.size = math.isqrt(self.samples)
        self._rng = np.random.default_rng(seed)
        self._order: Optional[np.ndarray] = None
        self._count = 0

    @property
    def stratified(self) -> int:
        """Number of samples covered by the k×k grid (k²)."""
        return self.size * self.size

    def shuffle(self) -> "JitterSampler":
        """Randomize the emission order; point values are unaffected."""
        if self._count:
            raise RuntimeError("Cannot shuffle a sampler that has already started")
        self._order = self._rng.permutation(self.samples)
        return self

    def index(self) -> int:
        """Cell index of the next sample to emit."""
        if self._order is None:
            return self._count
        return int(self._order[self._count])

    def __iter__(self) -> "JitterSampler":
        return self

    def __next__(self) -> Tuple[float, float]:
        if self._count >= self.samples:
            raise StopIteration
        index = self.index()
        self._count += 1

        u, v = self._rng.random(2)
        if index < self.stratified:
            return (self._jitter(index % self.size, u), self._jitter(index // self.size, v))
        return (float(u), float(v))

    def _jitter(self, cell: int, u: float) -> float:
        """Place uniform `u` inside cell `cell` of a `size`-wide axis."""
        lo = cell / self.size
        hi = (cell + 1) / self.size
        # (cell + u) can round up to cell + 1 for u close to 1
        return float(min(max((cell + u) / self.size, lo), math.nextafter(hi, lo)))

    def __len__(self) -> int:
        return self.samples - self._count

    def __repr__(self) -> str:
        return f"JitterSampler(samples={self.samples}, grid={self.size}x{self.size}, emitted={self._count})"
