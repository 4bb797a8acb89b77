"""
Local store implementations: in-memory and single JSON file.

The in-memory store is what tests use. The file store keeps every key in
one JSON object on disk and rewrites the whole file on each write.
"""

import copy
import json
from pathlib import Path
from typing import Any, Optional

from finance_ledger.config import get_settings
from finance_ledger.services.storage.interface import KeyValueStore, StorageError


class InMemoryStore(KeyValueStore):
    """
    Dict-backed store.

    Values are deep-copied on the way in and out, so callers can never
    mutate persisted state by holding on to a reference.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, Any] = copy.deepcopy(initial or {})
        self.write_count = 0

    async def read(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def write(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)
        self.write_count += 1


class JsonFileStore(KeyValueStore):
    """Store every key in a single JSON document on disk."""

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else get_settings().json_store.path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read store file {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Store file {self._path} does not hold a JSON object")
        return data

    async def read(self, key: str) -> Optional[Any]:
        return self._load().get(key)

    async def write(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            tmp_path.replace(self._path)
        except OSError as e:
            raise StorageError(f"Failed to write store file {self._path}: {e}") from e
