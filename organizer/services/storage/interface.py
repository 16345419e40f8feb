"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for both sides of persistence.
This allows us to:
1. Keep the aggregate on local disk or in memory (tests)
2. Mirror it to an HTTP service, Google Sheets or an in-memory fake
3. Keep the sync engine decoupled from any particular backend

Two interfaces, two very different contracts:
- KeyValueStoreInterface is LOCAL and SYNCHRONOUS. A write returns once the
  value is durable.
- RemoteStoreInterface is REMOTE and ASYNCHRONOUS. Every call may fail and
  the engine treats failure as "not delivered", never as fatal.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for the local durable key-value store.

    Values are serialized strings; the store never interprets them.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored string, or None if the key was never written

        Raises:
            LocalStoreError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Durably store a value, replacing any previous one atomically.

        A crash mid-write must leave either the old or the new value,
        never a truncated mix.

        Raises:
            LocalStoreError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote persistence service.

    Both operations are idempotent upserts/reads of a whole JSON document.
    """

    @abstractmethod
    async def save(self, key: str, value: dict[str, Any]) -> bool:
        """
        Upsert a document under a key.

        Returns:
            True if the service acknowledged the write, False on an explicit
            non-success response

        Raises:
            RemoteUnavailableError: If the service could not be reached
            RemoteStoreError: For any other delivery failure
        """
        pass

    @abstractmethod
    async def load(self, key: str) -> Optional[dict[str, Any]]:
        """
        Fetch the document stored under a key.

        Returns:
            The document, or None if the key has never been written

        Raises:
            RemoteUnavailableError: If the service could not be reached
            RemoteStoreError: If the service answered with an error
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class LocalStoreError(StorageError):
    """The local durable store could not be read or written."""
    pass


class RemoteStoreError(StorageError):
    """The remote service rejected or failed a request."""
    pass


class RemoteUnavailableError(RemoteStoreError):
    """Could not reach the remote service (network down, DNS, timeout)."""
    pass


class ImportValidationError(StorageError):
    """A document did not match the aggregate schema."""
    pass
