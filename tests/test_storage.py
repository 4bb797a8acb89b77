"""Tests for the store backends (no network: Sheets is mocked)."""

import json
import pytest
from unittest.mock import MagicMock

from finance_ledger.services.storage import (
    GoogleSheetsStore,
    InMemoryStore,
    JsonFileStore,
    StorageError,
)
from finance_ledger.services.storage.google_sheets import CELL_CHAR_LIMIT, STORE_COLUMNS


class TestInMemoryStore:
    """Tests for the dict-backed store."""

    @pytest.mark.asyncio
    async def test_missing_key(self):
        assert await InMemoryStore().read("nope") is None

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = InMemoryStore()
        value = {"items": [1, 2]}
        await store.write("k", value)
        value["items"].append(3)

        read_back = await store.read("k")
        read_back["items"].append(4)

        assert (await store.read("k")) == {"items": [1, 2]}
        assert store.write_count == 1


class TestJsonFileStore:
    """Tests for the single-file JSON store."""

    @pytest.mark.asyncio
    async def test_write_and_read(self, tmp_path):
        path = tmp_path / "ledger.json"
        store = JsonFileStore(path)
        await store.write("records", [{"id": "a"}])
        await store.write("budgets", [])

        assert await store.read("records") == [{"id": "a"}]
        assert json.loads(path.read_text(encoding="utf-8")) == {
            "records": [{"id": "a"}],
            "budgets": [],
        }

    @pytest.mark.asyncio
    async def test_missing_file_reads_none(self, tmp_path):
        assert await JsonFileStore(tmp_path / "absent.json").read("k") is None

    @pytest.mark.asyncio
    async def test_creates_parent_directories(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "dir" / "ledger.json")
        await store.write("k", 1)
        assert await store.read("k") == 1

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStore(path).read("k")

    @pytest.mark.asyncio
    async def test_non_object_file(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStore(path).read("k")


@pytest.fixture
def sheet():
    sheet = MagicMock()
    sheet.get_all_values.return_value = [
        STORE_COLUMNS,
        ["records", '[{"id": "a"}]', "2024-06-01T00:00:00+00:00"],
        ["empty", "", ""],
    ]
    return sheet


@pytest.fixture
def sheets_store(sheet):
    client = MagicMock()
    client.get_store_sheet.return_value = sheet
    return GoogleSheetsStore(client)


class TestGoogleSheetsStore:
    """Tests for the Sheets store against a mocked worksheet."""

    @pytest.mark.asyncio
    async def test_read_existing_key(self, sheets_store):
        assert await sheets_store.read("records") == [{"id": "a"}]

    @pytest.mark.asyncio
    async def test_read_missing_or_empty(self, sheets_store):
        assert await sheets_store.read("audit") is None
        assert await sheets_store.read("empty") is None

    @pytest.mark.asyncio
    async def test_write_existing_key_updates_row(self, sheets_store, sheet):
        await sheets_store.write("records", [])
        sheet.update.assert_called_once()
        kwargs = sheet.update.call_args.kwargs
        assert kwargs["range_name"] == "A2:C2"
        assert kwargs["values"][0][:2] == ["records", "[]"]
        sheet.append_row.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_new_key_appends(self, sheets_store, sheet):
        await sheets_store.write("budgets", [{"month": "2024-06"}])
        row = sheet.append_row.call_args.args[0]
        assert row[0] == "budgets"
        assert json.loads(row[1]) == [{"month": "2024-06"}]

    @pytest.mark.asyncio
    async def test_oversized_value_rejected(self, sheets_store, sheet):
        with pytest.raises(StorageError):
            await sheets_store.write("records", "x" * CELL_CHAR_LIMIT)
        sheet.append_row.assert_not_called()
        sheet.update.assert_not_called()
