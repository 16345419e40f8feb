"""
Sync Models

Types that describe the outbound queue and the overall sync health.
The queue is persisted next to the aggregate, so these are pydantic models too.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from organizer.models.aggregate import OrganizerModel, generate_id, utc_now


class SyncOperationType(str, Enum):
    """Kinds of queued operations. Only full snapshots exist today."""
    SNAPSHOT = "snapshot"


class SyncEntryStatus(str, Enum):
    """
    Lifecycle of a queue entry.

    PENDING -> IN_FLIGHT -> (removed on success)
                         -> PENDING again on failure below the retry ceiling
                         -> FAILED at the ceiling (moved to the dead-letter list)
    """
    PENDING = "pending"
    IN_FLIGHT = "in-flight"
    FAILED = "failed"


class SyncStatus(str, Enum):
    """Advisory sync health shown to the user. Never blocks CRUD."""
    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"
    FAILED = "failed"


class SyncQueueEntry(OrganizerModel):
    """
    One queued delivery to the remote service.

    The payload is a full serialized copy of the aggregate taken at enqueue
    time; later local writes replace it while it is still pending.
    """

    id: str = Field(default_factory=generate_id)
    type: SyncOperationType = SyncOperationType.SNAPSHOT
    payload: dict[str, Any] = Field(default_factory=dict)
    retry_count: int = Field(default=0, ge=0)
    status: SyncEntryStatus = SyncEntryStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    last_error: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Most recent delivery error, for inspection"
    )
