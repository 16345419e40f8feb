"""
Organizer Engine

This module wires the components together and owns their lifecycle.
It answers "what runs, and when?", not "how is data stored?".

Components:
- OrganizerStore: the aggregate and every CRUD operation
- SyncQueue: outbound delivery with coalescing and retry
- RemotePoller: inbound pulls with last-writer-wins
- DayBoundaryScheduler: the midnight rollover
- ConnectivityMonitor / ChangeNotifier: signals in, notifications out
- CommandExecutor / AuditLogger: the assistant's command boundary

DESIGN DECISION: No global singleton.
create_organizer() returns an explicit handle; tests build as many
independent engines as they like, each with its own clock.
"""

from typing import Optional

import structlog

from organizer.audit.logger import AuditLogger, configure_logging
from organizer.commands.executor import CommandExecutor
from organizer.config import Settings, SyncSettings, get_settings
from organizer.events import ChangeNotifier
from organizer.facade import OrganizerStore
from organizer.models.sync import SyncStatus
from organizer.services.storage import (
    AggregateStore,
    JsonFileStore,
    KeyValueStoreInterface,
    RemoteStoreInterface,
    create_remote_store,
)
from organizer.sync.connectivity import ConnectivityMonitor
from organizer.sync.day_boundary import DayBoundaryScheduler
from organizer.sync.poller import RemotePoller
from organizer.sync.queue import SyncQueue
from organizer.sync.scheduler import AsyncioScheduler, Scheduler


logger = structlog.get_logger(__name__)


class Organizer:
    """
    Handle over one running engine.

    Environment signals (online/offline, visible/hidden, realtime pushes)
    come in through this object; everything else is reached via `store`.
    """

    def __init__(
        self,
        store: OrganizerStore,
        queue: SyncQueue,
        poller: RemotePoller,
        day_boundary: DayBoundaryScheduler,
        connectivity: ConnectivityMonitor,
        notifier: ChangeNotifier,
        audit: AuditLogger,
        commands: CommandExecutor,
        scheduler: Scheduler,
        remote: Optional[RemoteStoreInterface] = None,
    ):
        self.store = store
        self.queue = queue
        self.poller = poller
        self.day_boundary = day_boundary
        self.connectivity = connectivity
        self.notifier = notifier
        self.audit = audit
        self.commands = commands
        self.scheduler = scheduler
        self.remote = remote
        self._started = False

        connectivity.add_online_listener(self._on_online_changed)
        connectivity.add_visibility_listener(self._on_visibility_changed)

    @property
    def started(self) -> bool:
        return self._started

    @property
    def sync_status(self) -> SyncStatus:
        return self.queue.status

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Arm the midnight timer, start polling and flush anything queued."""
        if self._started:
            return
        self._started = True
        self.day_boundary.start()
        if self.connectivity.online:
            self.poller.start()
            if len(self.queue):
                self.queue.request_drain()
        logger.info(
            "organizer_started",
            online=self.connectivity.online,
            remote=type(self.remote).__name__ if self.remote else None,
        )

    async def shutdown(self) -> None:
        """Cancel every timer and release network resources."""
        self._stop_timers()
        if isinstance(self.scheduler, AsyncioScheduler):
            await self.scheduler.aclose()
        close = getattr(self.remote, "aclose", None)
        if close is not None:
            await close()
        logger.info("organizer_stopped")

    def reset(self) -> None:
        """Cancel every timer and clear all persisted state."""
        self._stop_timers()
        self.queue.clear()
        self.store.reset()
        self.audit.clear()
        logger.info("organizer_reset")

    def _stop_timers(self) -> None:
        self._started = False
        self.day_boundary.stop()
        self.poller.stop()

    # -------------------------------------------------------------------------
    # Environment signals
    # -------------------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        self.connectivity.set_online(online)

    def set_visible(self, visible: bool) -> None:
        self.connectivity.set_visible(visible)

    def handle_realtime_push(self) -> None:
        """The remote announced a change: pull it now, whatever the timestamps."""
        if not self.connectivity.online:
            return
        self.scheduler.call_soon(self.poller.request_pull, True)

    async def force_sync(self) -> SyncStatus:
        """Drain the outbound queue now."""
        return await self.queue.drain()

    def _on_online_changed(self, online: bool) -> None:
        if online:
            self.queue.request_drain()
            if self._started:
                self.poller.start()
        else:
            self.poller.stop()

    def _on_visibility_changed(self, visible: bool) -> None:
        if not self._started or not self.connectivity.online:
            return
        if visible:
            self.poller.start()
        else:
            self.poller.reschedule()


def create_organizer(
    settings: Optional[Settings] = None,
    *,
    scheduler: Optional[Scheduler] = None,
    kv_store: Optional[KeyValueStoreInterface] = None,
    remote: Optional[RemoteStoreInterface] = None,
    sync_settings: Optional[SyncSettings] = None,
    online: bool = True,
    visible: bool = True,
) -> Organizer:
    """
    Factory function to create all engine components.

    Args:
        settings: Root settings (defaults to get_settings())
        scheduler: Clock and timers (defaults to the asyncio event loop)
        kv_store: Local durable store (defaults to JSON files in data_dir)
        remote: Remote store (defaults to the configured backend, if any)
        sync_settings: Override for the sync tuning section
        online: Initial network state
        visible: Initial visibility

    Returns:
        An Organizer that has not been started yet
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    storage_settings = settings.storage
    sync_settings = sync_settings or settings.sync

    scheduler = scheduler or AsyncioScheduler()
    kv_store = kv_store or JsonFileStore(storage_settings.data_dir)
    if remote is None:
        remote = create_remote_store(settings)

    connectivity = ConnectivityMonitor(online=online, visible=visible)
    notifier = ChangeNotifier()

    queue = SyncQueue(
        kv_store=kv_store,
        scheduler=scheduler,
        connectivity=connectivity,
        notifier=notifier,
        remote=remote,
        settings=sync_settings,
        queue_key=storage_settings.queue_key,
        dead_letter_key=storage_settings.dead_letter_key,
    )
    store = OrganizerStore(
        local=AggregateStore(kv_store, storage_settings.data_key),
        queue=queue,
        scheduler=scheduler,
        notifier=notifier,
    )
    poller = RemotePoller(
        store=store,
        remote=remote,
        scheduler=scheduler,
        connectivity=connectivity,
        settings=sync_settings,
    )
    audit = AuditLogger(
        kv_store,
        key=storage_settings.audit_key,
        max_entries=storage_settings.audit_max_entries,
    )

    return Organizer(
        store=store,
        queue=queue,
        poller=poller,
        day_boundary=DayBoundaryScheduler(scheduler, store.perform_day_rollover),
        connectivity=connectivity,
        notifier=notifier,
        audit=audit,
        commands=CommandExecutor(store, audit),
        scheduler=scheduler,
        remote=remote,
    )
