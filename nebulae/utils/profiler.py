"""Lightweight wall-clock profiling.

Provides:
    - timer(): Context manager for wall-clock timing with optional sink
    - TimerAccumulator: running mean over repeated measurements

Used to measure:
    - Each render pass (tracing + barrier + merge)
    - Intermediate snapshot hand-off
    - PNG encoding on the writer thread

No heavy dependencies (no cProfile overhead inside the hot loop).
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def log_sink(level: int = logging.DEBUG) -> Callable[[str, float], None]:
    """Build a timer sink that logs `name: elapsed` at the given level."""
    def sink(name: str, elapsed: float) -> None:
        logger.log(level, "%s: %.3f s", name, elapsed)
    return sink


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds); logs at DEBUG if None

    Examples
    --------
    >>> with timer("pass 3"):
    ...     run_pass()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        (sink or log_sink())(name, elapsed)


class TimerAccumulator:
    """Accumulate multiple timing measurements for averaging.

    Attributes
    ----------
    name : str
        Timer name
    total_time : float
        Accumulated time in seconds
    count : int
        Number of measurements

    Examples
    --------
    >>> pass_timer = TimerAccumulator("pass")
    >>> with pass_timer.measure():
    ...     run_pass()
    >>> pass_timer.eta(remaining=99)
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0
        self.last = 0.0

    @contextmanager
    def measure(self):
        """Context manager to measure and accumulate time."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.last = time.perf_counter() - start
            self.total_time += self.last
            self.count += 1

    def mean(self) -> float:
        """Mean time per measurement in seconds, or 0.0 if none recorded."""
        return self.total_time / self.count if self.count > 0 else 0.0

    def eta(self, remaining: int) -> float:
        """Estimated seconds for `remaining` more measurements."""
        return self.mean() * max(remaining, 0)

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
