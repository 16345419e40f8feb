"""In-memory remote store for tests and offline runs."""

import copy
from typing import Any, Optional

from organizer.services.storage.interface import (
    RemoteStoreInterface,
    RemoteUnavailableError,
)


class InMemoryRemoteStore(RemoteStoreInterface):
    """
    Remote store held in a dict.

    Flip `available` to False to simulate the service being unreachable,
    or set `accept_saves` to False to simulate non-success answers.
    """

    def __init__(self, documents: Optional[dict[str, dict[str, Any]]] = None):
        self.documents: dict[str, dict[str, Any]] = dict(documents or {})
        self.available = True
        self.accept_saves = True
        self.save_calls: list[tuple[str, dict[str, Any]]] = []
        self.load_calls: list[str] = []

    async def save(self, key: str, value: dict[str, Any]) -> bool:
        self.save_calls.append((key, value))
        if not self.available:
            raise RemoteUnavailableError("In-memory remote is offline")
        if not self.accept_saves:
            return False
        self.documents[key] = copy.deepcopy(value)
        return True

    async def load(self, key: str) -> Optional[dict[str, Any]]:
        self.load_calls.append(key)
        if not self.available:
            raise RemoteUnavailableError("In-memory remote is offline")
        value = self.documents.get(key)
        return copy.deepcopy(value) if value is not None else None
