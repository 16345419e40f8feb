"""Services package."""

from organizer.services.storage import (
    AggregateStore,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    HttpRemoteStore,
    ImportValidationError,
    InMemoryRemoteStore,
    JsonFileStore,
    KeyValueStoreInterface,
    LocalStoreError,
    MemoryKeyValueStore,
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
    StorageError,
    create_remote_store,
)

__all__ = [
    "AggregateStore",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "HttpRemoteStore",
    "ImportValidationError",
    "InMemoryRemoteStore",
    "JsonFileStore",
    "KeyValueStoreInterface",
    "LocalStoreError",
    "MemoryKeyValueStore",
    "RemoteStoreError",
    "RemoteStoreInterface",
    "RemoteUnavailableError",
    "StorageError",
    "create_remote_store",
]
