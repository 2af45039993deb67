"""Progress estimation for simulated processing work.

The duration model is size-derived: total duration is
clamp(size / BYTES_PER_MS, min, max) milliseconds, split into a fixed number
of steps. Intermediate steps cap progress at 95; only the final step reports
100. Whether the final step succeeds is decided by a FaultPolicy, which is
kept separate from the estimator so tests can force either path.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

from common.constants import BYTES_PER_MS, MAX_INTERMEDIATE_PROGRESS
from common.logging_config import get_logger
from ingest import config
from ingest.utils import round_half_up

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessingPlan:
    """Tick schedule for one item."""
    total_duration_ms: float
    steps: int

    @property
    def tick_interval_seconds(self) -> float:
        return self.total_duration_ms / self.steps / 1000


class ProgressEstimator:
    """Pure progress and time-remaining calculations."""

    def __init__(
        self,
        steps: Optional[int] = None,
        min_duration_ms: Optional[float] = None,
        max_duration_ms: Optional[float] = None,
        bytes_per_ms: int = BYTES_PER_MS,
    ):
        self.steps = config.STEPS if steps is None else steps
        self.min_duration_ms = config.MIN_DURATION_MS if min_duration_ms is None else min_duration_ms
        self.max_duration_ms = config.MAX_DURATION_MS if max_duration_ms is None else max_duration_ms
        self.bytes_per_ms = bytes_per_ms

        if self.steps < 1:
            raise ValueError("steps must be at least 1")
        if self.min_duration_ms < 0 or self.max_duration_ms < self.min_duration_ms:
            raise ValueError("duration bounds must satisfy 0 <= min <= max")

    def duration_ms(self, size_bytes: int) -> float:
        """Total simulated duration for a file of the given size."""
        raw = size_bytes / self.bytes_per_ms
        return min(max(raw, self.min_duration_ms), self.max_duration_ms)

    def plan(self, size_bytes: int) -> ProcessingPlan:
        return ProcessingPlan(total_duration_ms=self.duration_ms(size_bytes), steps=self.steps)

    def progress_for_step(self, step: int) -> int:
        """
        Progress percentage after the given step (1-based).

        Returns 100 only for the final step; earlier steps are capped at 95.
        """
        if step >= self.steps:
            return 100
        if step <= 0:
            return 0
        return min(MAX_INTERMEDIATE_PROGRESS, step * 100 // self.steps)

    @staticmethod
    def estimate_remaining_seconds(elapsed_ms: float, progress: int) -> Optional[int]:
        """
        Extrapolate remaining seconds from elapsed time and progress.

        Returns None when progress is 0, since nothing can be extrapolated.
        """
        if progress <= 0:
            return None
        projected_total = elapsed_ms / progress * 100
        return max(0, round_half_up((projected_total - elapsed_ms) / 1000))


class FaultPolicy:
    """Decides whether the final processing step hits a transient fault."""

    def should_fail(self) -> bool:
        raise NotImplementedError


class RandomFaultPolicy(FaultPolicy):
    """Fails with a fixed probability."""

    def __init__(self, probability: Optional[float] = None, rng: Optional[random.Random] = None):
        if probability is None:
            probability = config.FAILURE_PROBABILITY
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"probability must be within [0, 1], got {probability}")
        self.probability = probability
        self._rng = rng or random.Random()

    def should_fail(self) -> bool:
        return self._rng.random() < self.probability


class NeverFail(FaultPolicy):
    def should_fail(self) -> bool:
        return False


class AlwaysFail(FaultPolicy):
    def should_fail(self) -> bool:
        return True


TickCallback = Callable[[int, Optional[int]], None]


class ProgressTicker:
    """
    Cancellable ticking loop bound to one item.

    Sleeps one tick interval per step and reports (progress, eta) for every
    intermediate step, then sleeps through the final step and returns. The
    final 100% is written by the queue once the outcome is known.
    """

    def __init__(
        self,
        estimator: ProgressEstimator,
        plan: ProcessingPlan,
        on_tick: TickCallback,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.estimator = estimator
        self.plan = plan
        self.on_tick = on_tick
        self._clock = clock
        self._stopped = False
        self._last_progress = 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True

    async def run(self) -> None:
        started = self._clock()
        interval = self.plan.tick_interval_seconds

        for step in range(1, self.plan.steps):
            await asyncio.sleep(interval)
            if self._stopped:
                return

            progress = self.estimator.progress_for_step(step)
            if progress <= self._last_progress:
                continue
            self._last_progress = progress

            elapsed_ms = (self._clock() - started) * 1000
            eta = self.estimator.estimate_remaining_seconds(elapsed_ms, progress)
            self.on_tick(progress, eta)

        if not self._stopped:
            await asyncio.sleep(interval)
