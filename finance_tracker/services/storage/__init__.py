"""
Storage Services Package

Provides the abstract key-value interface, its backends, and the
repository that stores the ledger collections on top of them.
Local JSON files are the default backend, but the layer is swappable.
"""

from finance_tracker.services.storage.interface import (
    ConnectionError,
    KeyValueStoreInterface,
    NotFoundError,
    StorageError,
)
from finance_tracker.services.storage.local import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from finance_tracker.services.storage.repository import LedgerRepository

__all__ = [
    # Interface
    "KeyValueStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Backends
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    # Repository
    "LedgerRepository",
]
