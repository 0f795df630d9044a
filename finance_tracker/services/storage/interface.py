"""
Abstract Storage Interface

DESIGN DECISION: Persistence is a plain key-value store of JSON text.
Each collection lives under one key and is rewritten whole on every save.
This allows us to:
1. Keep the browser-era storage format (one JSON array per key)
2. Use in-memory storage for testing
3. Swap the local file for Google Sheets without touching the ledger

The interface is intentionally tiny - get and set. Parsing, defaults and
error swallowing live in the repository on top of it.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for key-value storage.

    Any backend (local files, Google Sheets, memory) must implement
    these methods. Implementations raise StorageError subclasses;
    they never return partial values.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the raw value stored under a key.

        Args:
            key: The storage key

        Returns:
            The stored text, or None if the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Replace the value stored under a key.

        Args:
            key: The storage key
            value: Serialized JSON text

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Storage location (file, worksheet, spreadsheet) not found."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
