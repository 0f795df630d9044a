"""Services package."""

from finance_tracker.services.storage import (
    ConnectionError,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStoreInterface,
    LedgerRepository,
    NotFoundError,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStoreInterface",
    "LedgerRepository",
    "NotFoundError",
    "StorageError",
]
