"""
Day-Boundary Scheduler

Fires once at the next local midnight, then every 24 hours.
Each fire hands control to a callback (the store's day rollover), which
records yesterday's stats and makes sure the new month has a chart.
"""

from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

if TYPE_CHECKING:
    from organizer.sync.scheduler import Scheduler, TimerHandle


logger = structlog.get_logger(__name__)

DAY_SECONDS = 24 * 60 * 60


def seconds_until_next_midnight(now: datetime) -> float:
    """Seconds from now to the start of the following calendar day."""
    next_midnight = datetime.combine(
        now.date() + timedelta(days=1),
        time.min,
        tzinfo=now.tzinfo,
    )
    return (next_midnight - now).total_seconds()


class DayBoundaryScheduler:
    """Owns the one-shot and repeating midnight timers."""

    def __init__(self, scheduler: "Scheduler", on_boundary: Callable[[], Any]):
        self._scheduler = scheduler
        self._on_boundary = on_boundary
        self._timeout: Optional["TimerHandle"] = None
        self._interval: Optional["TimerHandle"] = None

    @property
    def active(self) -> bool:
        return any(
            handle is not None and not handle.cancelled
            for handle in (self._timeout, self._interval)
        )

    def start(self) -> None:
        """Arm the midnight timer. Calling start() again re-arms from scratch."""
        self.stop()
        delay = seconds_until_next_midnight(self._scheduler.now())
        self._timeout = self._scheduler.call_later(delay, self._first_boundary)
        logger.debug("day_boundary_armed", seconds_until_midnight=delay)

    def stop(self) -> None:
        for handle in (self._timeout, self._interval):
            if handle is not None:
                handle.cancel()
        self._timeout = None
        self._interval = None

    def _first_boundary(self) -> Any:
        self._timeout = None
        self._interval = self._scheduler.call_every(DAY_SECONDS, self._fire)
        return self._fire()

    def _fire(self) -> Any:
        logger.info("day_boundary_reached", now=self._scheduler.now().isoformat())
        return self._on_boundary()
