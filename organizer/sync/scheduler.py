"""
Timer Scheduling

Every timer of the engine (drain requests, poll ticks, the day boundary)
goes through a Scheduler so that each one is individually cancellable and
tests can drive time by hand.

Two implementations:
- AsyncioScheduler: real event-loop timers. A callback returning a coroutine
  runs as a task; failures are logged, never lost silently.
- ManualScheduler: a virtual clock. Nothing runs until advance() is awaited,
  then due timers fire in time order and their coroutines are awaited inline.
"""

import asyncio
import inspect
import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

import structlog


logger = structlog.get_logger(__name__)

Callback = Callable[..., Any]


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the timer. Cancelling twice (or after firing) is a no-op."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Clock plus timers."""

    @abstractmethod
    def now(self) -> datetime:
        """Current local wall-clock time (naive)."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle:
        """Run callback(*args) once after delay seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        pass

    def utc_now(self) -> datetime:
        """Current time as an aware UTC timestamp."""
        return self.now().astimezone(timezone.utc)

    def call_soon(self, callback: Callback, *args: Any) -> TimerHandle:
        """Run callback(*args) on the next turn of the scheduler."""
        return self.call_later(0, callback, *args)

    def call_every(self, interval: float, callback: Callback, *args: Any) -> TimerHandle:
        """Run callback(*args) every interval seconds until cancelled."""
        return RepeatingTimer(self, interval, callback, args)


class RepeatingTimer(TimerHandle):
    """
    Fixed-interval timer built on call_later.

    The next occurrence is armed before the callback runs, so a failing
    callback does not stop the repetition.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        callback: Callback,
        args: tuple,
    ):
        if interval <= 0:
            raise ValueError(f"Repeat interval must be positive, got {interval}")
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._args = args
        self._cancelled = False
        self._handle: Optional[TimerHandle] = None
        self._arm()

    def _arm(self) -> None:
        self._handle = self._scheduler.call_later(self._interval, self._fire)

    def _fire(self) -> Any:
        if self._cancelled:
            return None
        self._arm()
        return self._callback(*self._args)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# =============================================================================
# ASYNCIO
# =============================================================================

class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: Optional[asyncio.TimerHandle]):
        self._handle = handle
        self._cancelled = handle is None

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: set[asyncio.Future] = set()

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def now(self) -> datetime:
        return datetime.now()

    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle:
        loop = self._get_loop()
        if loop is None:
            logger.warning(
                "timer_not_scheduled",
                reason="no running event loop",
                callback=getattr(callback, "__qualname__", repr(callback)),
            )
            return _AsyncioTimer(None)
        handle = loop.call_later(max(delay, 0), self._run, callback, args)
        return _AsyncioTimer(handle)

    def _run(self, callback: Callback, args: tuple) -> None:
        name = getattr(callback, "__qualname__", repr(callback))
        try:
            result = callback(*args)
        except Exception:
            logger.exception("scheduled_callback_failed", callback=name)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(lambda t: self._task_done(t, name))

    def _task_done(self, task: asyncio.Future, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "scheduled_task_failed",
                callback=name,
                error=str(error),
                error_type=type(error).__name__,
            )

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def aclose(self) -> None:
        """Cancel and await every task started from a timer."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


# =============================================================================
# MANUAL (virtual clock)
# =============================================================================

class _ManualTimer(TimerHandle):
    def __init__(self, when: datetime, seq: int, callback: Callback, args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler with a virtual clock.

    sleep() yields to the event loop but does not move the clock.
    """

    def __init__(self, start: datetime):
        self._now = start
        self._timers: list[_ManualTimer] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay: float, callback: Callback, *args: Any) -> TimerHandle:
        when = self._now + timedelta(seconds=max(delay, 0))
        timer = _ManualTimer(when, next(self._seq), callback, args)
        self._timers.append(timer)
        return timer

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(0)

    @property
    def pending_timers(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for t in self._timers if not t.cancelled)

    def next_due(self) -> Optional[datetime]:
        due = [t.when for t in self._timers if not t.cancelled]
        return min(due) if due else None

    async def advance(self, delta: Union[timedelta, float]) -> None:
        """
        Move the clock forward, firing every timer that falls due.

        Timers armed by a callback fire in the same call if they are due
        before the target time.
        """
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        target = self._now + delta

        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self._now = max(self._now, timer.when)

            result = timer.callback(*timer.args)
            if inspect.isawaitable(result):
                await result

        self._timers = [t for t in self._timers if not t.cancelled]
        self._now = target

    async def advance_to(self, moment: datetime) -> None:
        await self.advance(max(moment - self._now, timedelta(0)))

    async def run_pending(self) -> None:
        """Fire everything already due without moving the clock."""
        await self.advance(0)
