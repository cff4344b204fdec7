"""PNG export of histogram snapshots.

Provides:
    - write_png(): map counts through the intensity curve and save an 8-bit
      RGB PNG atomically
    - ImageWriter: one background writer thread; doubles as the renderer's
      intermediate sink so encoding never stalls the next pass
    - IntervalSink: forwards at most one snapshot per time interval

Writes are serialized on the writer thread, so successive snapshots of the
same output file never interleave. A snapshot may still be encoding while
the next pass accumulates; that is harmless because every snapshot is a copy.

Failures:
    - intermediate write failures are logged and the render carries on
    - the final write's failure is raised from Future.result()
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np

from nebulae.engine.intensity import to_image
from nebulae.utils import fs
from nebulae.utils.profiler import timer

logger = logging.getLogger(__name__)


def write_png(
    counts: np.ndarray,
    maximum: int,
    curve: float,
    resolution: int,
    path: Union[str, Path]
) -> Path:
    """Map a histogram snapshot to pixels and save it as an RGB PNG.

    Parameters
    ----------
    counts : np.ndarray
        Flat or (resolution, resolution, 3) counters
    maximum : int
        Brightest counter value
    curve : float
        Intensity curve exponent
    resolution : int
        Image width and height in pixels
    path : Union[str, Path]
        Output file; always encoded as PNG whatever the extension

    Returns
    -------
    Path
        The written path
    """
    path = Path(path)
    pixels = to_image(counts, maximum, curve, resolution)
    fs.atomic_save_image(pixels, path, pil_kwargs={'format': 'PNG'})
    return path


class ImageWriter:
    """Encodes snapshots to one PNG file on a dedicated background thread.

    Parameters
    ----------
    output_path : Union[str, Path]
        File every snapshot is written to (overwritten each time)
    curve : float
        Intensity curve exponent
    resolution : int
        Image width and height in pixels

    Examples
    --------
    >>> with ImageWriter("image.png", settings.curve, settings.resolution) as writer:
    ...     counts, maximum = render_nebulabrot(settings, intermediates=writer)
    ...     writer.submit(counts, maximum).result()
    """

    def __init__(self, output_path: Union[str, Path], curve: float, resolution: int):
        self.output_path = Path(output_path)
        self.curve = curve
        self.resolution = resolution
        self.written = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nebulae-writer")

    def submit(self, counts: np.ndarray, maximum: int) -> Future:
        """Queue one snapshot for writing; the returned Future carries any error."""
        counts = np.array(counts, copy=True)
        return self._executor.submit(self._write, counts, int(maximum))

    def _write(self, counts: np.ndarray, maximum: int) -> Path:
        with timer(f"write {self.output_path.name}"):
            path = write_png(counts, maximum, self.curve, self.resolution, self.output_path)
        self.written += 1
        logger.debug("Wrote %s (maximum=%d)", path, maximum)
        return path

    def __call__(self, counts: np.ndarray, maximum: int) -> None:
        """Intermediate sink: fire-and-forget, failures are only logged."""
        self.submit(counts, maximum).add_done_callback(self._log_failure)

    def _log_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Intermediate write to %s failed: %s", self.output_path, exc)

    def close(self, wait: bool = True) -> None:
        """Stop the writer thread, waiting for queued writes by default."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ImageWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(wait=True)


class IntervalSink:
    """Throttle an intermediate sink to one call per `interval_s` seconds.

    The first snapshot is always forwarded; later ones only once the
    interval has elapsed since the last forwarded snapshot.

    Parameters
    ----------
    sink : callable
        Wrapped sink(counts, maximum)
    interval_s : float
        Minimum time between forwarded snapshots (0 forwards every one)
    clock : callable
        Monotonic clock in seconds, injectable for tests
    """

    def __init__(
        self,
        sink: Callable[[np.ndarray, int], None],
        interval_s: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_s < 0:
            raise ValueError(f"interval_s must be >= 0, got {interval_s}")
        self._sink = sink
        self.interval_s = interval_s
        self._clock = clock
        self._last: Optional[float] = None
        self.skipped = 0

    def __call__(self, counts: np.ndarray, maximum: int) -> None:
        now = self._clock()
        if self._last is not None and now - self._last < self.interval_s:
            self.skipped += 1
            return
        self._last = now
        self._sink(counts, maximum)
