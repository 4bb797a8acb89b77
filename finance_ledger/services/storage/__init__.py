"""
Storage Services Package

Provides the abstract key-value interface and concrete implementations:
in-memory (tests), a local JSON file, and Google Sheets.
"""

from finance_ledger.services.storage.interface import (
    ConnectionError,
    KeyValueStore,
    StorageError,
)
from finance_ledger.services.storage.local import (
    InMemoryStore,
    JsonFileStore,
)
from finance_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsStore,
)

__all__ = [
    # Interface
    "KeyValueStore",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Local implementations
    "InMemoryStore",
    "JsonFileStore",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsStore",
]
