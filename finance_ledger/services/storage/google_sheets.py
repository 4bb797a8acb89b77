"""
Google Sheets Store Implementation

DESIGN DECISION: A spreadsheet can back the ledger store for small teams:
1. Non-technical staff can inspect the raw data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each store key is one row: [key, value_json, updated_at].

TRADEOFFS:
- A cell holds at most 50,000 characters, which bounds the size of one key
- No transactions; each write replaces a single row
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_ledger.config import get_settings
from finance_ledger.services.storage.interface import (
    ConnectionError,
    KeyValueStore,
    StorageError,
)


STORE_COLUMNS = [
    "key",
    "value_json",
    "updated_at",
]

CELL_CHAR_LIMIT = 50_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the key-value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.store_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.store_sheet_name,
                rows=100,
                cols=len(STORE_COLUMNS),
            )
            sheet.append_row(STORE_COLUMNS)
        return sheet


class GoogleSheetsStore(KeyValueStore):
    """
    Google Sheets implementation of the ledger store.

    Values are JSON-serialized into the second column of the key's row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _find_row(all_rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index of `key`, skipping the header."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _fetch_rows(self) -> list[list[str]]:
        try:
            return self._client.get_store_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to read store sheet: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _put_row(self, row: list[str]) -> None:
        try:
            sheet = self._client.get_store_sheet()
            idx = self._find_row(sheet.get_all_values(), row[0])
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{idx}:C{idx}",
                    values=[row],
                    value_input_option="RAW",
                )
        except Exception as e:
            raise StorageError(f"Failed to write key {row[0]}: {e}")

    async def read(self, key: str) -> Optional[Any]:
        """Read and decode the JSON stored for `key`."""
        all_rows = self._fetch_rows()
        idx = self._find_row(all_rows, key)
        if idx is None:
            return None

        row = all_rows[idx - 1]
        raw = row[1] if len(row) > 1 else ""
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Stored value for {key} is not valid JSON: {e}")

    async def write(self, key: str, value: Any) -> None:
        """Insert or replace the row for `key`."""
        payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        if len(payload) > CELL_CHAR_LIMIT:
            raise StorageError(
                f"Value for {key} is {len(payload)} characters; "
                f"a sheet cell holds at most {CELL_CHAR_LIMIT}"
            )
        self._put_row([key, payload, datetime.now(timezone.utc).isoformat()])
