"""
Storage Services Package

Provides abstract interfaces and concrete implementations for both sides of
persistence: the local durable key-value store and the remote service.
"""

from typing import Optional

from organizer.config import Settings, get_settings
from organizer.services.storage.aggregate import (
    AggregateStore,
    export_document,
    merge_defaults,
    parse_document,
)
from organizer.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)
from organizer.services.storage.http import HttpRemoteStore
from organizer.services.storage.interface import (
    ImportValidationError,
    KeyValueStoreInterface,
    LocalStoreError,
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    StorageError,
)
from organizer.services.storage.local import JsonFileStore, MemoryKeyValueStore
from organizer.services.storage.memory import InMemoryRemoteStore


def create_remote_store(
    settings: Optional[Settings] = None,
) -> Optional[RemoteStoreInterface]:
    """
    Build the remote store selected by ORGANIZER_REMOTE_BACKEND.

    Returns None for the "none" backend: the engine then runs local-only.
    """
    settings = settings or get_settings()
    remote = settings.remote

    if remote.backend == "http":
        return HttpRemoteStore(
            api_base=remote.api_base,
            timeout=remote.timeout_seconds,
        )
    if remote.backend == "sheets":
        return GoogleSheetsRemoteStore(GoogleSheetsClient(settings.google_sheets))
    return None


__all__ = [
    # Interfaces
    "KeyValueStoreInterface",
    "RemoteStoreInterface",
    # Exceptions
    "ImportValidationError",
    "LocalStoreError",
    "RemoteStoreError",
    "RemoteUnavailableError",
    "StorageError",
    # Local store
    "AggregateStore",
    "JsonFileStore",
    "MemoryKeyValueStore",
    "export_document",
    "merge_defaults",
    "parse_document",
    # Remote stores
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "HttpRemoteStore",
    "InMemoryRemoteStore",
    "create_remote_store",
]
