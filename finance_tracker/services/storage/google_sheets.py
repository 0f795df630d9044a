"""
Google Sheets Key-Value Store

DESIGN DECISION: Google Sheets is offered as a remote backend because:
1. Users can look at (and back up) their data directly in Sheets
2. No database setup required
3. The same collections can be opened from several machines

TRADEOFFS:
- A cell holds at most 50,000 characters, so large values are split
  across consecutive cells of the key's row
- No transactions: a value is rewritten by appending the new row and
  then deleting the old one; readers take the last row for a key
"""

from datetime import datetime
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import GoogleSheetsSettings, get_settings
from finance_tracker.services.storage.interface import (
    ConnectionError,
    KeyValueStoreInterface,
    NotFoundError,
    StorageError,
)


HEADER = ["key", "updated_at", "value"]

# Google Sheets limit is 50,000 characters per cell
CELL_CHUNK_SIZE = 45000


def split_value(value: str, chunk_size: int = CELL_CHUNK_SIZE) -> list[str]:
    """Split a value into cell-sized chunks (at least one, possibly empty)."""
    if not value:
        return [""]
    return [value[i:i + chunk_size] for i in range(0, len(value), chunk_size)]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

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
                raise NotFoundError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the key-value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.worksheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.worksheet_name,
                rows=100,
                cols=len(HEADER),
            )
            sheet.append_row(HEADER)
        return sheet


class GoogleSheetsKeyValueStore(KeyValueStoreInterface):
    """
    Google Sheets implementation of the key-value store.

    Layout: one row per key, `[key, updated_at, chunk1, chunk2, ...]`.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _rows_for(self, all_rows: list[list[str]], key: str) -> list[int]:
        """1-based sheet row numbers holding the key, in sheet order."""
        return [
            idx
            for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is header
            if row and row[0] == key
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def get(self, key: str) -> Optional[str]:
        try:
            sheet = self._client.get_store_sheet()
            all_rows = sheet.get_all_values()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}")

        matches = self._rows_for(all_rows, key)
        if not matches:
            return None
        # Last row wins if an earlier rewrite left a stale copy behind
        row = all_rows[matches[-1] - 1]
        return "".join(row[2:])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def set(self, key: str, value: str) -> None:
        try:
            sheet = self._client.get_store_sheet()
            stale = self._rows_for(sheet.get_all_values(), key)
            row = [key, datetime.utcnow().isoformat()] + split_value(value)
            sheet.append_row(row, value_input_option="RAW")
            for idx in reversed(stale):
                sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}")

    def delete(self, key: str) -> bool:
        try:
            sheet = self._client.get_store_sheet()
            rows = self._rows_for(sheet.get_all_values(), key)
            for idx in reversed(rows):
                sheet.delete_rows(idx)
            return bool(rows)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {key}: {e}")
