"""
Outbound Sync Queue

A durable FIFO of snapshots waiting to reach the remote service.

DESIGN DECISION: Coalescing.
Every local mutation enqueues a full snapshot of the aggregate, but only the
latest state ever needs shipping. If a pending snapshot is already queued it
is replaced in place, so the queue holds at most one pending snapshot (plus
at most one in flight).

CRITICAL: Only one drain runs at a time.
drain() marks the head in-flight and persists the queue BEFORE awaiting the
remote, so a crash mid-delivery is visible on the next start. Enqueues that
happen while a delivery is awaited never touch the in-flight entry.

Failure handling:
- Any exception from the remote counts as a failed attempt, never as fatal
- A failed attempt increments retryCount and records lastError
- Below the retry ceiling the entry goes back to the tail as pending, unless
  a newer pending snapshot already supersedes it
- At the ceiling it is marked failed and moved to the dead-letter list,
  where requeue_dead_letters() can revive it
"""

import json
from typing import TYPE_CHECKING, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from organizer.config import SyncSettings
from organizer.events import ChangeKind, ChangeNotifier
from organizer.models.aggregate import OrganizerData
from organizer.models.sync import SyncEntryStatus, SyncQueueEntry, SyncStatus
from organizer.services.storage.interface import (
    KeyValueStoreInterface,
    LocalStoreError,
    RemoteStoreInterface,
    StorageError,
)
from organizer.sync.connectivity import ConnectivityMonitor

if TYPE_CHECKING:
    from organizer.sync.scheduler import Scheduler


logger = structlog.get_logger(__name__)

_ENTRY_LIST = TypeAdapter(list[SyncQueueEntry])

MAX_ERROR_LENGTH = 500


class SyncQueue:
    """Durable, coalescing outbound queue with retry and dead letters."""

    def __init__(
        self,
        kv_store: KeyValueStoreInterface,
        scheduler: "Scheduler",
        connectivity: ConnectivityMonitor,
        notifier: ChangeNotifier,
        remote: Optional[RemoteStoreInterface],
        settings: SyncSettings,
        queue_key: str,
        dead_letter_key: str,
    ):
        self._kv = kv_store
        self._scheduler = scheduler
        self._connectivity = connectivity
        self._notifier = notifier
        self._remote = remote
        self._remote_key = settings.remote_key
        self._max_retries = settings.max_retries
        self._pause = settings.drain_pause_seconds
        self._queue_key = queue_key
        self._dead_letter_key = dead_letter_key

        self._draining = False
        self._drain_requested = False
        self._entries = self._load(queue_key)
        self._dead_letters = self._load(dead_letter_key)
        self._recover_interrupted()
        self._status = self._resting_status()

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    @property
    def entries(self) -> list[SyncQueueEntry]:
        return [e.model_copy(deep=True) for e in self._entries]

    @property
    def dead_letters(self) -> list[SyncQueueEntry]:
        return [e.model_copy(deep=True) for e in self._dead_letters]

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def is_draining(self) -> bool:
        return self._draining

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------------

    def enqueue_snapshot(self, data: OrganizerData) -> SyncQueueEntry:
        """
        Queue a snapshot of the aggregate, replacing any pending one.

        Triggers a drain when online.
        """
        entry = SyncQueueEntry(payload=data.to_document())

        index = self._pending_index()
        if index is None:
            self._entries.append(entry)
            logger.debug("sync_snapshot_enqueued", entry_id=entry.id)
        else:
            self._entries[index] = entry
            logger.debug("sync_snapshot_coalesced", entry_id=entry.id)

        self._persist_entries()
        if not self._draining:
            self._set_status(SyncStatus.PENDING)

        if self._connectivity.online:
            self.request_drain()
        return entry

    def request_drain(self) -> None:
        """Schedule a drain on the next scheduler turn (at most one queued)."""
        if self._remote is None or self._drain_requested:
            return
        self._drain_requested = True
        self._scheduler.call_soon(self._run_requested_drain)

    async def _run_requested_drain(self) -> None:
        self._drain_requested = False
        await self.drain()

    # -------------------------------------------------------------------------
    # Drain
    # -------------------------------------------------------------------------

    async def drain(self) -> SyncStatus:
        """
        Deliver queued snapshots in FIFO order.

        Returns immediately if another drain is running or no remote is
        configured. Stops as soon as the environment reports offline.

        Returns:
            The sync status after the drain
        """
        if self._draining or self._remote is None:
            return self._status

        self._draining = True
        try:
            while self._entries:
                if not self._connectivity.online:
                    logger.info("sync_drain_aborted_offline", remaining=len(self._entries))
                    break

                entry = self._entries[0]
                entry.status = SyncEntryStatus.IN_FLIGHT
                self._persist_entries()
                self._set_status(SyncStatus.SYNCING)

                delivered, error = await self._deliver(entry)

                if not self._entries or self._entries[0] is not entry:
                    # Queue was cleared while the delivery was awaited
                    break
                self._entries.pop(0)

                if delivered:
                    logger.info(
                        "sync_snapshot_delivered",
                        entry_id=entry.id,
                        retry_count=entry.retry_count,
                    )
                else:
                    self._record_failure(entry, error)

                self._persist_entries()
                if self._entries:
                    await self._scheduler.sleep(self._pause)
        finally:
            self._draining = False

        self._set_status(self._resting_status())
        return self._status

    async def _deliver(self, entry: SyncQueueEntry) -> tuple[bool, Optional[str]]:
        try:
            ok = await self._remote.save(self._remote_key, entry.payload)
        except StorageError as e:
            return False, str(e)
        except Exception as e:
            logger.exception("sync_delivery_unexpected_error", entry_id=entry.id)
            return False, f"{type(e).__name__}: {e}"
        if not ok:
            return False, "Remote service did not acknowledge the snapshot"
        return True, None

    def _record_failure(self, entry: SyncQueueEntry, error: Optional[str]) -> None:
        entry.retry_count += 1
        entry.last_error = (error or "")[:MAX_ERROR_LENGTH]

        if entry.retry_count >= self._max_retries:
            entry.status = SyncEntryStatus.FAILED
            self._dead_letters.append(entry)
            self._persist_dead_letters()
            logger.error(
                "sync_snapshot_abandoned",
                entry_id=entry.id,
                retry_count=entry.retry_count,
                error=entry.last_error,
            )
            return

        entry.status = SyncEntryStatus.PENDING
        logger.warning(
            "sync_delivery_failed",
            entry_id=entry.id,
            retry_count=entry.retry_count,
            error=entry.last_error,
        )
        if self._pending_index() is None:
            self._entries.append(entry)
        else:
            logger.debug("sync_snapshot_superseded", entry_id=entry.id)

    # -------------------------------------------------------------------------
    # Dead letters & maintenance
    # -------------------------------------------------------------------------

    def requeue_dead_letters(self) -> int:
        """
        Give abandoned snapshots another chance.

        Only the newest one matters (snapshots are full copies), and a
        pending snapshot already in the queue is newer still.

        Returns:
            Number of dead letters cleared
        """
        count = len(self._dead_letters)
        if count == 0:
            return 0

        newest = self._dead_letters[-1]
        self._dead_letters = []
        if self._pending_index() is None:
            newest.status = SyncEntryStatus.PENDING
            newest.retry_count = 0
            newest.last_error = None
            self._entries.append(newest)

        self._persist_entries()
        self._persist_dead_letters()
        logger.info("sync_dead_letters_requeued", count=count)

        if not self._draining:
            self._set_status(self._resting_status())
        if self._connectivity.online and self._entries:
            self.request_drain()
        return count

    def clear(self) -> None:
        """Drop every queued entry and dead letter."""
        self._entries = []
        self._dead_letters = []
        for key in (self._queue_key, self._dead_letter_key):
            try:
                self._kv.delete(key)
            except LocalStoreError as e:
                logger.error("sync_queue_clear_failed", key=key, error=str(e))
        self._set_status(SyncStatus.IDLE)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _pending_index(self) -> Optional[int]:
        for idx, entry in enumerate(self._entries):
            if entry.status == SyncEntryStatus.PENDING:
                return idx
        return None

    def _resting_status(self) -> SyncStatus:
        if self._entries:
            return SyncStatus.PENDING
        if self._dead_letters:
            return SyncStatus.FAILED
        return SyncStatus.IDLE

    def _set_status(self, status: SyncStatus) -> None:
        if status == self._status:
            return
        self._status = status
        self._notifier.publish(ChangeKind.SYNC_STATUS_CHANGED, status=status.value)

    def _recover_interrupted(self) -> None:
        """
        Normalize a queue loaded from disk.

        An entry left in-flight by a crash is pending again. If that leaves
        several pending snapshots, only the newest is kept.
        """
        for entry in self._entries:
            if entry.status == SyncEntryStatus.IN_FLIGHT:
                entry.status = SyncEntryStatus.PENDING

        pending = [e for e in self._entries if e.status == SyncEntryStatus.PENDING]
        if len(pending) > 1:
            self._entries = [pending[-1]]
            logger.info("sync_queue_recovered", dropped=len(pending) - 1)
            self._persist_entries()

    def _load(self, key: str) -> list[SyncQueueEntry]:
        try:
            raw = self._kv.get(key)
        except LocalStoreError as e:
            logger.error("sync_queue_read_failed", key=key, error=str(e))
            return []
        if raw is None:
            return []
        try:
            return _ENTRY_LIST.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "sync_queue_parse_failed",
                key=key,
                error_count=e.error_count(),
            )
            return []

    def _dump(self, key: str, entries: list[SyncQueueEntry]) -> None:
        payload = json.dumps(
            [e.model_dump(mode="json", by_alias=True) for e in entries],
            ensure_ascii=False,
        )
        try:
            self._kv.set(key, payload)
        except LocalStoreError as e:
            logger.error("sync_queue_write_failed", key=key, error=str(e))

    def _persist_entries(self) -> None:
        self._dump(self._queue_key, self._entries)

    def _persist_dead_letters(self) -> None:
        self._dump(self._dead_letter_key, self._dead_letters)
