"""Render orchestrator: passes of concurrent sample → trace → accumulate.

State machine:
    IDLE → RENDERING (per pass: tracing → joined → [snapshot]) → FINISHED
    any worker failure → FAILED (the exception propagates to the caller)

Per pass, `threads × 3` worker tasks run on a thread pool, one per render
slot and color channel. Each worker:
    1. draws `samples_per_pass_channel` jittered points (fresh sampler)
    2. maps each point to c = (x·5 − 2.5, y·5 − 2.5)
    3. traces z ← z² + c from z = 0 with the channel's iteration limit
    4. if the point escaped, projects its whole trajectory from [-2, 2]²
       onto the pixel grid and counts every point that lands inside

Points that never escape contribute nothing: the image encodes how busy the
divergent orbits are, not set membership.

Accumulation strategies:
    "merge" (default) each worker fills a private partial grid; the
                      orchestrator merges all partials after the pass barrier
    "bump"            workers call Histogram.bump() per point as they go

Passes are strictly sequential. After each pass barrier an optional
intermediate sink receives (counts, maximum) synchronously from the
orchestrator thread, so it is never called concurrently with itself.
A failing worker aborts the render after the barrier: a pass missing one
channel's contribution would silently bias the image, so nothing is retried.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional, Tuple

import numpy as np

from nebulae.utils import compute
from nebulae.utils.logging_config import pop_context, push_context
from nebulae.utils.profiler import TimerAccumulator
from nebulae.utils.validators import RenderSettings, resolve_thread_count

from .escape import ESCAPE_RADIUS, STOP_RADIUS, PathTracer
from .histogram import CHANNELS, COUNTER_DTYPE, Histogram
from .sampler import JitterSampler, SeedLike

logger = logging.getLogger(__name__)

IntermediateSink = Callable[[np.ndarray, int], None]

STRATEGIES = ("merge", "bump")

# Escaped points buffered by a worker before projecting them in one go
FLUSH_POINTS = 1 << 20


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class RenderState(Enum):
    """Current orchestrator state."""

    IDLE = auto()
    RENDERING = auto()
    FINISHED = auto()
    FAILED = auto()


@dataclass
class RenderProgress:
    """Progress snapshot handed to the progress callback."""

    state: RenderState
    pass_index: int = 0
    passes: int = 0
    completed_tasks: int = 0
    total_tasks: int = 0
    maximum: int = 0
    message: str = ""


@dataclass(frozen=True)
class RenderResult:
    """Final, fully consistent histogram of a finished render."""

    counts: np.ndarray
    maximum: int
    passes: int
    elapsed_s: float

    @property
    def flat(self) -> np.ndarray:
        """Counters as a 1-D sequence of resolution² × 3 values."""
        return self.counts.reshape(-1)


class WorkerError(RuntimeError):
    """A worker task raised; the render is aborted."""

    def __init__(self, render_pass: int, slot: int, channel: int, cause: BaseException):
        super().__init__(
            f"Worker for pass {render_pass}, thread {slot}, channel {channel} failed: {cause!r}"
        )
        self.render_pass = render_pass
        self.slot = slot
        self.channel = channel


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------


class _PartialAccumulator:
    """Private per-worker grid, filled in batches of escaped trajectories."""

    def __init__(self, resolution: int):
        self.resolution = resolution
        self._partial = np.zeros(resolution * resolution, dtype=COUNTER_DTYPE)
        self._pending: List[np.ndarray] = []
        self._pending_points = 0

    def add(self, path: np.ndarray) -> None:
        # path is a view into the tracer's buffer
        self._pending.append(path.copy())
        self._pending_points += len(path)
        if self._pending_points >= FLUSH_POINTS:
            self._flush()

    def _flush(self) -> None:
        if not self._pending:
            return
        points = np.concatenate(self._pending)
        self._pending = []
        self._pending_points = 0

        rows, cols = compute.plane_to_pixels(points, self.resolution)
        if rows.size:
            hits = np.bincount(rows * self.resolution + cols, minlength=self._partial.size)
            np.add(self._partial, hits.astype(COUNTER_DTYPE), out=self._partial)

    def finish(self) -> np.ndarray:
        self._flush()
        return self._partial.reshape(self.resolution, self.resolution)


class _BumpAccumulator:
    """Bumps the shared histogram directly for every projected point."""

    def __init__(self, histogram: Histogram, channel: int):
        self._histogram = histogram
        self._channel = channel

    def add(self, path: np.ndarray) -> None:
        rows, cols = compute.plane_to_pixels(path, self._histogram.resolution)
        for x, y in zip(rows.tolist(), cols.tolist()):
            self._histogram.bump(x, y, self._channel)

    def finish(self) -> None:
        return None


def trace_channel(
    settings: RenderSettings,
    channel: int,
    seed: SeedLike = None,
    histogram: Optional[Histogram] = None
) -> Optional[np.ndarray]:
    """Run one worker task: sample, trace and accumulate one channel.

    Parameters
    ----------
    settings : RenderSettings
        Render configuration
    channel : int
        Color channel (0 = red, 1 = green, 2 = blue)
    seed : None, int or np.random.SeedSequence
        Seed for this worker's sampler
    histogram : Histogram, optional
        When given, points are bumped straight into it ("bump" strategy)

    Returns
    -------
    Optional[np.ndarray]
        (resolution, resolution) uint32 partial grid, or None in bump mode
    """
    if histogram is None:
        accumulator = _PartialAccumulator(settings.resolution)
    else:
        accumulator = _BumpAccumulator(histogram, channel)

    tracer = PathTracer(settings.limits[channel], ESCAPE_RADIUS, STOP_RADIUS)
    sampler = JitterSampler(settings.samples_per_pass_channel, seed).shuffle()

    escaped_count = 0
    for x, y in sampler:
        path, escaped = tracer.trace(compute.sample_to_plane(x, y))
        if escaped:
            escaped_count += 1
            accumulator.add(path)

    logger.debug(
        "Channel %d: %d/%d samples escaped (limit %d)",
        channel, escaped_count, sampler.samples, tracer.limit
    )
    return accumulator.finish()


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class NebulabrotRenderer:
    """Runs one Nebulabrot render on a pool of threads.

    Parameters
    ----------
    settings : RenderSettings
        Validated render configuration
    intermediates : callable, optional
        sink(counts, maximum) called after every pass barrier with a flat
        snapshot of the histogram
    strategy : str
        "merge" (default) or "bump", see module docstring
    seed : int, optional
        Root seed for every worker's generator; None is fully random
    """

    def __init__(
        self,
        settings: RenderSettings,
        *,
        intermediates: Optional[IntermediateSink] = None,
        strategy: str = "merge",
        seed: Optional[int] = None,
    ) -> None:
        if strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {STRATEGIES}, got {strategy!r}")
        self.settings = settings
        self.threads = resolve_thread_count(settings)
        self.strategy = strategy
        self.histogram: Optional[Histogram] = None

        self._intermediates = intermediates
        self._seed_seq = np.random.SeedSequence(seed)
        self._state = RenderState.IDLE
        self._progress_cb: Optional[Callable[[RenderProgress], None]] = None
        self._progress = RenderProgress(state=RenderState.IDLE, passes=settings.passes)

    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def tasks_per_pass(self) -> int:
        return self.threads * CHANNELS

    def set_progress_callback(self, fn: Callable[[RenderProgress], None]) -> None:
        """Register a callback invoked (from the orchestrator thread) on progress."""
        self._progress_cb = fn

    def _notify(self, **kwargs: object) -> None:
        for k, v in kwargs.items():
            setattr(self._progress, k, v)
        if self._progress_cb is not None:
            try:
                self._progress_cb(self._progress)
            except Exception as exc:
                # A broken display must not abort the render
                logger.error("Progress callback error: %s", exc)

    def render(self) -> RenderResult:
        """Run every pass and return the final histogram.

        Raises
        ------
        RuntimeError
            If this renderer has already been used
        WorkerError
            If any worker task raised
        """
        if self._state is not RenderState.IDLE:
            raise RuntimeError(f"Renderer already used (state={self._state.name})")

        settings = self.settings
        self.histogram = Histogram(settings.resolution)
        self._state = RenderState.RENDERING
        self._notify(state=self._state, total_tasks=self.tasks_per_pass)
        logger.info(
            "Rendering %d pass(es) on %d thread(s), %d task(s) per pass, strategy=%s",
            settings.passes, self.threads, self.tasks_per_pass, self.strategy
        )

        pass_timer = TimerAccumulator("pass")
        started = time.perf_counter()
        try:
            with ThreadPoolExecutor(
                max_workers=self.tasks_per_pass,
                thread_name_prefix="nebulae-worker",
            ) as pool:
                for render_pass in range(1, settings.passes + 1):
                    push_context(render_pass=render_pass)
                    with pass_timer.measure():
                        self._run_pass(pool, render_pass)
                    logger.info(
                        "Pass %d/%d done in %.2f s (maximum=%d, eta %.0f s)",
                        render_pass, settings.passes, pass_timer.last,
                        self.histogram.maximum,
                        pass_timer.eta(settings.passes - render_pass),
                    )
                    if self._intermediates is not None:
                        snapshot = self.histogram.snapshot()
                        self._intermediates(snapshot.flat, snapshot.maximum)
        except BaseException:
            self._state = RenderState.FAILED
            self._notify(state=self._state, message="Render failed")
            raise
        finally:
            pop_context(keys=["render_pass"])

        # Every worker has joined: the final snapshot is consistent
        final = self.histogram.snapshot()
        elapsed = time.perf_counter() - started
        self._state = RenderState.FINISHED
        self._notify(state=self._state, maximum=final.maximum, message="Finished")
        logger.info("Render finished in %.2f s (maximum=%d)", elapsed, final.maximum)
        return RenderResult(
            counts=final.counts,
            maximum=final.maximum,
            passes=settings.passes,
            elapsed_s=elapsed,
        )

    def _run_pass(self, pool: ThreadPoolExecutor, render_pass: int) -> None:
        """Submit one pass worth of tasks, wait for all of them, then merge."""
        settings = self.settings
        bump_target = self.histogram if self.strategy == "bump" else None
        seeds = self._seed_seq.spawn(self.tasks_per_pass)

        self._notify(
            pass_index=render_pass,
            completed_tasks=0,
            message=f"Rendering pass {render_pass}/{settings.passes} on {self.threads} threads",
        )

        futures = {}
        for slot in range(self.threads):
            for channel in range(CHANNELS):
                future = pool.submit(
                    trace_channel, settings, channel,
                    seeds[slot * CHANNELS + channel], bump_target,
                )
                futures[future] = (slot, channel)

        # Barrier: drain every future before merging or failing
        partials: List[Tuple[int, np.ndarray]] = []
        failure: Optional[WorkerError] = None
        completed = 0
        for future in as_completed(futures):
            slot, channel = futures[future]
            exc = future.exception()
            if exc is not None:
                logger.error(
                    "Worker thread %d channel %d failed: %r", slot, channel, exc,
                    exc_info=(type(exc), exc, exc.__traceback__),
                )
                if failure is None:
                    failure = WorkerError(render_pass, slot, channel, exc)
                    failure.__cause__ = exc
                continue
            partial = future.result()
            if partial is not None:
                partials.append((channel, partial))
            completed += 1
            self._notify(
                completed_tasks=completed,
                message=f"Pass {render_pass}: thread {slot} channel {channel} done",
            )

        if failure is not None:
            raise failure

        for channel, partial in partials:
            self.histogram.merge(channel, partial)
        self._notify(maximum=self.histogram.maximum)


def render_nebulabrot(
    settings: RenderSettings,
    intermediates: Optional[IntermediateSink] = None,
    seed: Optional[int] = None,
    strategy: str = "merge",
) -> Tuple[np.ndarray, int]:
    """Render a Nebulabrot on multiple threads.

    Returns
    -------
    counts : np.ndarray
        Flat uint32 sequence of resolution² × 3 counters (RGB interleaved)
    maximum : int
        Brightest counter value
    """
    renderer = NebulabrotRenderer(
        settings, intermediates=intermediates, strategy=strategy, seed=seed,
    )
    result = renderer.render()
    return result.flat, result.maximum
