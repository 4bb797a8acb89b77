"""
Abstract Storage Interface

DESIGN DECISION: The engine only ever needs a key-value store that holds
JSON documents. This allows us to:
1. Use browser-style local storage, a file, or a remote sheet interchangeably
2. Use in-memory storage for testing
3. Keep every engine rule decoupled from persistence

The interface is intentionally tiny: read a key, write a key.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from finance_ledger.errors import LedgerError


class KeyValueStore(ABC):
    """
    Abstract interface for the ledger's persistence.

    Values are JSON-compatible (dicts, lists, strings, numbers, bools, None).
    """

    @abstractmethod
    async def read(self, key: str) -> Optional[Any]:
        """
        Read the JSON value stored under `key`.

        Args:
            key: Store key

        Returns:
            The stored value, or None if the key was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def write(self, key: str, value: Any) -> None:
        """
        Replace the JSON value stored under `key`.

        Args:
            key: Store key
            value: JSON-compatible value

        Raises:
            StorageError: If the write fails
        """
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
