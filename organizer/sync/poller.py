"""
Inbound Poller

Periodically fetches the remote aggregate and replaces the local one when
the remote copy is strictly newer (last-writer-wins on lastUpdated).

Interval policy:
- visible: base interval
- hidden: a longer fixed interval
- after N consecutive failures the interval doubles per failure from the
  threshold onward, capped at a maximum

A realtime push asks for a forced pull. If a pull is already in flight the
forced one runs as soon as it finishes, so a push is never lost.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

import structlog

from organizer.config import SyncSettings
from organizer.services.storage.aggregate import parse_document
from organizer.services.storage.interface import RemoteStoreInterface, StorageError
from organizer.sync.connectivity import ConnectivityMonitor

if TYPE_CHECKING:
    from organizer.facade import OrganizerStore
    from organizer.sync.scheduler import Scheduler, TimerHandle


logger = structlog.get_logger(__name__)


class PollerState(str, Enum):
    STOPPED = "stopped"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"


class RemotePoller:
    """Adaptive pull loop with timestamp-based conflict resolution."""

    def __init__(
        self,
        store: "OrganizerStore",
        remote: Optional[RemoteStoreInterface],
        scheduler: "Scheduler",
        connectivity: ConnectivityMonitor,
        settings: SyncSettings,
    ):
        self._store = store
        self._remote = remote
        self._scheduler = scheduler
        self._connectivity = connectivity
        self._settings = settings

        self._running = False
        self._in_flight = False
        self._force_requested = False
        self._timer: Optional["TimerHandle"] = None
        self._consecutive_failures = 0

    @property
    def state(self) -> PollerState:
        if self._in_flight:
            return PollerState.IN_FLIGHT
        if self._timer is not None and not self._timer.cancelled:
            return PollerState.SCHEDULED
        return PollerState.STOPPED

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def current_interval(self) -> float:
        """Seconds until the next regular pull."""
        settings = self._settings
        if self._connectivity.visible:
            interval = settings.poll_interval_seconds
        else:
            interval = settings.hidden_poll_interval_seconds

        threshold = settings.failure_backoff_threshold
        if self._consecutive_failures >= threshold:
            interval *= 2 ** (self._consecutive_failures - threshold + 1)

        return min(interval, settings.max_poll_interval_seconds)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Pull now, then keep pulling on the current interval."""
        if self._remote is None:
            return
        self._running = True
        self._cancel_timer()
        self._timer = self._scheduler.call_soon(self._tick)

    def stop(self) -> None:
        self._running = False
        self._cancel_timer()

    def reschedule(self) -> None:
        """Re-arm the next tick with the current interval (e.g. visibility changed)."""
        if not self._running:
            return
        self._cancel_timer()
        if not self._in_flight:
            self._schedule_next()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_next(self) -> None:
        self._timer = self._scheduler.call_later(self.current_interval(), self._tick)

    async def _tick(self) -> None:
        self._timer = None
        if self._connectivity.online:
            await self.pull()
        if self._running and self._timer is None:
            self._schedule_next()

    # -------------------------------------------------------------------------
    # Pulling
    # -------------------------------------------------------------------------

    async def request_pull(self, force: bool = True) -> bool:
        """
        Pull on demand (realtime push, manual refresh).

        Returns:
            True if a remote document was applied
        """
        return await self.pull(force=force)

    async def pull(self, force: bool = False) -> bool:
        """
        Fetch the remote aggregate and apply it if newer (or if forced).

        A pull requested while another is in flight is skipped; a forced one
        is deferred until the current pull finishes.

        Returns:
            True if a remote document was applied
        """
        if self._remote is None:
            return False
        if self._in_flight:
            if force:
                self._force_requested = True
            return False

        self._in_flight = True
        try:
            applied = await self._pull_once(force)
            while self._force_requested:
                self._force_requested = False
                applied = await self._pull_once(True) or applied
        finally:
            self._in_flight = False
        return applied

    async def _pull_once(self, force: bool) -> bool:
        key = self._settings.remote_key
        try:
            document = await self._remote.load(key)
            remote = parse_document(document) if document is not None else None
        except StorageError as e:
            self._consecutive_failures += 1
            logger.warning(
                "remote_pull_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
                consecutive_failures=self._consecutive_failures,
            )
            return False
        except Exception:
            self._consecutive_failures += 1
            logger.exception(
                "remote_pull_unexpected_error",
                key=key,
                consecutive_failures=self._consecutive_failures,
            )
            return False

        self._consecutive_failures = 0
        if remote is None:
            logger.debug("remote_pull_empty", key=key)
            return False

        local_updated = self._store.last_updated
        if not force and remote.last_updated <= local_updated:
            logger.debug(
                "remote_pull_not_newer",
                remote_updated=remote.last_updated.isoformat(),
                local_updated=local_updated.isoformat(),
            )
            return False

        self._store.apply_remote(remote)
        logger.info(
            "remote_pull_applied",
            forced=force,
            remote_updated=remote.last_updated.isoformat(),
            local_updated=local_updated.isoformat(),
        )
        return True
