"""
Tests for timer scheduling and the day boundary.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from organizer.config import Settings
from organizer.engine import create_organizer
from organizer.services.storage import MemoryKeyValueStore
from organizer.sync.day_boundary import (
    DAY_SECONDS,
    DayBoundaryScheduler,
    seconds_until_next_midnight,
)
from organizer.sync.scheduler import AsyncioScheduler, ManualScheduler, RepeatingTimer


class TestManualScheduler:
    """Tests for the virtual clock."""

    @pytest.mark.asyncio
    async def test_timers_fire_in_time_order(self, scheduler):
        fired = []
        scheduler.call_later(20, fired.append, "b")
        scheduler.call_later(10, fired.append, "a")
        scheduler.call_later(20, fired.append, "c")

        await scheduler.advance(15)
        assert fired == ["a"]

        await scheduler.advance(5)
        assert fired == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_clock_moves(self, scheduler):
        start = scheduler.now()
        await scheduler.advance(timedelta(hours=2))
        assert scheduler.now() == start + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_cancelled_timer_does_not_fire(self, scheduler):
        fired = []
        handle = scheduler.call_later(5, fired.append, 1)
        handle.cancel()
        handle.cancel()

        await scheduler.advance(10)

        assert fired == []
        assert handle.cancelled is True
        assert scheduler.pending_timers == 0

    @pytest.mark.asyncio
    async def test_coroutine_callbacks_are_awaited(self, scheduler):
        fired = []

        async def job():
            await asyncio.sleep(0)
            fired.append(scheduler.now())

        scheduler.call_later(60, job)
        await scheduler.advance(120)

        assert fired == [datetime(2024, 1, 1, 9, 1)]

    @pytest.mark.asyncio
    async def test_call_every_repeats_until_cancelled(self, scheduler):
        fired = []
        handle = scheduler.call_every(10, lambda: fired.append(scheduler.now()))

        await scheduler.advance(35)
        assert len(fired) == 3

        handle.cancel()
        await scheduler.advance(100)
        assert len(fired) == 3

    def test_repeat_interval_must_be_positive(self, scheduler):
        with pytest.raises(ValueError):
            RepeatingTimer(scheduler, 0, print, ())

    def test_utc_now_is_aware(self, scheduler):
        assert scheduler.utc_now().tzinfo is not None


class TestAsyncioScheduler:
    """Tests for the event-loop scheduler."""

    @pytest.mark.asyncio
    async def test_call_later_runs_callback(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()
        scheduler.call_later(0.01, done.set)

        await asyncio.wait_for(done.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_coroutine_callback_runs_as_task(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        async def job():
            done.set()

        scheduler.call_soon(job)
        await asyncio.wait_for(done.wait(), timeout=1)
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self):
        scheduler = AsyncioScheduler()
        done = asyncio.Event()

        def boom():
            raise RuntimeError("boom")

        scheduler.call_soon(boom)
        scheduler.call_later(0.01, done.set)

        await asyncio.wait_for(done.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_cancel(self):
        scheduler = AsyncioScheduler()
        fired = []
        handle = scheduler.call_later(0.01, fired.append, 1)
        handle.cancel()

        await asyncio.sleep(0.05)

        assert fired == []
        assert handle.cancelled is True

    def test_without_event_loop_returns_cancelled_handle(self):
        handle = AsyncioScheduler().call_later(1, print)
        assert handle.cancelled is True


class TestDayBoundary:
    """Tests for the midnight timers."""

    def test_seconds_until_next_midnight(self):
        assert seconds_until_next_midnight(datetime(2024, 1, 1, 9, 0)) == 15 * 3600
        assert seconds_until_next_midnight(datetime(2024, 1, 1, 0, 0)) == DAY_SECONDS
        assert seconds_until_next_midnight(datetime(2024, 12, 31, 23, 59, 30)) == 30

    @pytest.mark.asyncio
    async def test_fires_at_midnight_then_daily(self, scheduler):
        fired = []
        boundary = DayBoundaryScheduler(scheduler, lambda: fired.append(scheduler.now()))
        boundary.start()

        await scheduler.advance(timedelta(hours=15))
        await scheduler.advance(timedelta(days=2))

        assert fired == [
            datetime(2024, 1, 2, 0, 0),
            datetime(2024, 1, 3, 0, 0),
            datetime(2024, 1, 4, 0, 0),
        ]
        assert boundary.active is True

    @pytest.mark.asyncio
    async def test_stop_cancels_everything(self, scheduler):
        fired = []
        boundary = DayBoundaryScheduler(scheduler, lambda: fired.append(1))
        boundary.start()
        await scheduler.advance(timedelta(hours=15))

        boundary.stop()
        await scheduler.advance(timedelta(days=3))

        assert fired == [1]
        assert boundary.active is False
        assert scheduler.pending_timers == 0

    def test_restart_rearms_single_timer(self, scheduler):
        boundary = DayBoundaryScheduler(scheduler, lambda: None)
        boundary.start()
        boundary.start()
        assert scheduler.pending_timers == 1

    @pytest.mark.asyncio
    async def test_rollover_records_yesterday(self, organizer, scheduler):
        """Test the engine's midnight rollover closes the previous day."""
        organizer.store.add_habit("Read", days_of_week=[0, 1, 2, 3, 4, 5, 6])
        monday = datetime(2024, 1, 1).date()
        assert organizer.store.get_daily_stats(monday) is None
        organizer.start()

        await scheduler.advance(timedelta(hours=15))

        stats = organizer.store.get_daily_stats(monday)
        assert stats.total_habits == 1
        assert stats.percentage == 0
        await organizer.shutdown()

    @pytest.mark.asyncio
    async def test_month_rollover_creates_new_chart(self, sync_settings):
        scheduler = ManualScheduler(datetime(2024, 1, 31, 22, 0))
        organizer = create_organizer(
            Settings(),
            scheduler=scheduler,
            kv_store=MemoryKeyValueStore(),
            remote=None,
            sync_settings=sync_settings,
        )
        organizer.store.add_habit("Read", days_of_week=[0, 1, 2, 3, 4, 5, 6])
        organizer.start()

        await scheduler.advance(timedelta(hours=2))

        assert organizer.store.get_monthly_chart("2024-02") is not None
        january = organizer.store.get_monthly_chart("2024-01")
        assert january.daily_stats[-1].date.isoformat() == "2024-01-31"
        assert january.daily_stats[-1].percentage == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
