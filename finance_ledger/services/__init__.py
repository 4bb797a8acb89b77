"""Services package."""

from finance_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsStore,
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsStore",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "StorageError",
]
