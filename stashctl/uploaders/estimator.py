"""Progress estimation for transfers without progress events.

The object store answers an upload with a single response, so progress,
speed and ETA are extrapolated from elapsed time and an assumed throughput
floor. Values are a UX heuristic, not a measurement.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Optional

from stashctl.models.progress import ProgressEstimate
from stashctl.uploaders.constants import (
    DEFAULT_THROUGHPUT_FLOOR,
    DEFAULT_TICK_INTERVAL,
    MAX_ESTIMATED_PERCENT,
    MIN_EXPECTED_DURATION,
)

logger = logging.getLogger(__name__)


def estimate_progress(
    elapsed: float,
    size: int,
    *,
    throughput_floor: float = DEFAULT_THROUGHPUT_FLOOR,
    min_duration: float = MIN_EXPECTED_DURATION,
    max_percent: float = MAX_ESTIMATED_PERCENT,
) -> ProgressEstimate:
    """Estimate transfer progress after ``elapsed`` seconds.

    The transfer is expected to take ``max(min_duration, size / floor)``
    seconds; progress grows linearly over that time and stops at
    ``max_percent`` until the transport resolves.

    Args:
        elapsed: Seconds since the transfer started.
        size: Payload size in bytes.
        throughput_floor: Assumed minimum throughput in bytes/s.
        min_duration: Shortest expected transfer in seconds.
        max_percent: Ceiling for the estimate.

    Returns:
        ProgressEstimate. ``time_remaining`` is None until a speed exists.
    """
    if elapsed <= 0:
        return ProgressEstimate(percent=0.0, bytes_uploaded=0.0, speed=0.0, time_remaining=None)

    expected = max(min_duration, size / throughput_floor)
    percent = min(max_percent, 100.0 * elapsed / expected)
    uploaded = percent / 100.0 * size
    speed = uploaded / elapsed
    time_remaining = (size - uploaded) / speed if speed > 0 else None

    return ProgressEstimate(
        percent=percent,
        bytes_uploaded=uploaded,
        speed=speed,
        time_remaining=time_remaining,
    )


def completed_estimate(elapsed: float, size: int) -> ProgressEstimate:
    """Estimate once the transport has resolved: 100%, nothing remaining."""
    speed = size / elapsed if elapsed > 0 else 0.0
    return ProgressEstimate(percent=100.0, bytes_uploaded=float(size), speed=speed, time_remaining=0.0)


class ProgressTicker:
    """Repeating task that feeds progress estimates to a callback.

    One ticker belongs to one transfer attempt. It starts on ``start()`` (or
    entering the ``with`` block) and is cancelled on ``stop()`` (or leaving
    it), so the callback never fires after the owner released it.
    """

    def __init__(
        self,
        size: int,
        on_tick: Callable[[ProgressEstimate], None],
        *,
        interval: float = DEFAULT_TICK_INTERVAL,
        throughput_floor: float = DEFAULT_THROUGHPUT_FLOOR,
        clock: Callable[[], float] = time.monotonic,
        started_at: Optional[float] = None,
        name: str = "progress-ticker",
    ):
        self.size = size
        self.on_tick = on_tick
        self.interval = interval
        self.throughput_floor = throughput_floor
        self.clock = clock
        self.started_at = started_at
        self.name = name
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, self.clock() - self.started_at)

    def estimate(self) -> ProgressEstimate:
        return estimate_progress(
            self.elapsed(),
            self.size,
            throughput_floor=self.throughput_floor,
        )

    def start(self) -> None:
        """Begin ticking on the running event loop."""
        if self._task is not None:
            return
        if self.started_at is None:
            self.started_at = self.clock()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def stop(self) -> None:
        """Cancel the ticking task; safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.on_tick(self.estimate())

    def __enter__(self) -> "ProgressTicker":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()
