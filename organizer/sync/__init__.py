"""
Sync Package

Everything that runs on timers or talks to the remote service:
scheduler, day boundary, outbound queue, inbound poller, connectivity.
"""

from organizer.sync.connectivity import ConnectivityMonitor
from organizer.sync.day_boundary import (
    DAY_SECONDS,
    DayBoundaryScheduler,
    seconds_until_next_midnight,
)
from organizer.sync.poller import PollerState, RemotePoller
from organizer.sync.queue import SyncQueue
from organizer.sync.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    RepeatingTimer,
    Scheduler,
    TimerHandle,
)

__all__ = [
    "AsyncioScheduler",
    "ConnectivityMonitor",
    "DAY_SECONDS",
    "DayBoundaryScheduler",
    "ManualScheduler",
    "PollerState",
    "RemotePoller",
    "RepeatingTimer",
    "Scheduler",
    "SyncQueue",
    "TimerHandle",
    "seconds_until_next_midnight",
]
