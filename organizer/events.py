"""
Change Notification

Subscribers learn about changes to the aggregate and to sync state through
explicit subscriptions. There is no global event bus: each engine owns one
ChangeNotifier.

A subscriber that raises is logged and skipped; the remaining subscribers
still receive the event.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import structlog
from pydantic import BaseModel, Field

from organizer.models.aggregate import utc_now


logger = structlog.get_logger(__name__)


class ChangeKind(str, Enum):
    """What changed."""
    DATA_CHANGED = "data_changed"
    SETTINGS_CHANGED = "settings_changed"
    REMOTE_APPLIED = "remote_applied"
    SYNC_STATUS_CHANGED = "sync_status_changed"


class ChangeEvent(BaseModel):
    """A single notification delivered to subscribers."""

    kind: ChangeKind
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


Listener = Callable[[ChangeEvent], Any]


class Subscription:
    """Handle returned by ChangeNotifier.subscribe()."""

    def __init__(
        self,
        notifier: "ChangeNotifier",
        callback: Listener,
        kinds: Optional[frozenset[ChangeKind]],
    ):
        self._notifier = notifier
        self.callback = callback
        self.kinds = kinds
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def wants(self, kind: ChangeKind) -> bool:
        return self.kinds is None or kind in self.kinds

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._notifier._remove(self)


class ChangeNotifier:
    """Publishes ChangeEvents to subscribers."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        callback: Listener,
        kinds: Optional[Iterable[ChangeKind]] = None,
    ) -> Subscription:
        """
        Register a callback.

        Args:
            callback: Called with each matching ChangeEvent
            kinds: Only deliver these kinds (None means all)
        """
        subscription = Subscription(
            self,
            callback,
            frozenset(kinds) if kinds is not None else None,
        )
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, kind: ChangeKind, **details: Any) -> ChangeEvent:
        event = ChangeEvent(kind=kind, details=details)

        # Copy: a callback may unsubscribe while we iterate
        for subscription in list(self._subscriptions):
            if not subscription.active or not subscription.wants(kind):
                continue
            try:
                subscription.callback(event)
            except Exception as e:
                logger.error(
                    "subscriber_failed",
                    kind=kind.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return event

    def clear(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
