"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a persistent backend because:
1. The household can look at (and back up) its data directly in Sheets
2. No database setup required
3. Easy to export/migrate later

Every entity type gets its own worksheet. A row is [id, json-record]: the
records are schemaless dicts, so we store them whole instead of mapping
columns field by field.

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one household)
- No transactions (we handle this with careful ordering and the bill
  self-repair pass)
- Index lookups scan the worksheet and filter in Python
"""

from __future__ import annotations

import json
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import GoogleSheetsSettings, get_settings
from household_ledger.services.storage.interface import (
    ConnectionError,
    EntityType,
    RecordStore,
    StorageError,
    index_fields,
    index_key,
    normalize_key,
)


HEADER = ["id", "record_json"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, entity_type: EntityType) -> gspread.Worksheet:
        """Get or create the worksheet holding one entity type."""
        title = f"{self._settings.worksheet_prefix}{EntityType(entity_type).value}"
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(HEADER),
            )
            sheet.append_row(HEADER)
        self._worksheets[title] = sheet
        return sheet


class GoogleSheetsRecordStore(RecordStore):
    """
    Google Sheets implementation of the RecordStore.

    Row 1 of each worksheet is the header; data starts at row 2.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _record_to_row(record: dict[str, Any]) -> list[str]:
        return [str(record["id"]), json.dumps(record, ensure_ascii=False, sort_keys=True)]

    @staticmethod
    def _row_to_record(row: list[str]) -> Optional[dict[str, Any]]:
        if len(row) < 2 or not row[0] or not row[1]:
            return None
        return json.loads(row[1])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, entity_type: EntityType) -> list[list[str]]:
        """All data rows (header excluded)."""
        try:
            return self._client.get_worksheet(entity_type).get_all_values()[1:]
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {entity_type}: {e}")

    def _records(self, entity_type: EntityType) -> list[dict[str, Any]]:
        records = []
        for row in self._read_rows(entity_type):
            record = self._row_to_record(row)
            if record is not None:
                records.append(record)
        return records

    def _find_row(self, entity_type: EntityType, record_id: str) -> Optional[int]:
        """1-based sheet row number of a record, or None."""
        for idx, row in enumerate(self._read_rows(entity_type), start=2):
            if row and row[0] == record_id:
                return idx
        return None

    async def list(self, entity_type: EntityType) -> list[dict[str, Any]]:
        return self._records(entity_type)

    async def get(
        self,
        entity_type: EntityType,
        record_id: str,
    ) -> Optional[dict[str, Any]]:
        for row in self._read_rows(entity_type):
            if row and row[0] == record_id:
                return self._row_to_record(row)
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, entity_type: EntityType, record: dict[str, Any]) -> None:
        """Upsert: update the row in place when the id exists, else append."""
        try:
            sheet = self._client.get_worksheet(entity_type)
            row = self._record_to_row(record)
            row_number = self._find_row(entity_type, record["id"])
            if row_number is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{row_number}:B{row_number}",
                    values=[row],
                    value_input_option="RAW",
                )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {entity_type} record: {e}")

    async def put(self, entity_type: EntityType, record: dict[str, Any]) -> bool:
        if not record.get("id"):
            raise StorageError(f"Cannot store a {entity_type} record without an id")
        self._write_row(entity_type, record)
        return True

    async def remove(self, entity_type: EntityType, record_id: str) -> bool:
        try:
            row_number = self._find_row(entity_type, record_id)
            if row_number is None:
                return False
            self._client.get_worksheet(entity_type).delete_rows(row_number)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {entity_type} record: {e}")

    async def list_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> list[dict[str, Any]]:
        fields = index_fields(entity_type, index)
        wanted = normalize_key(key)
        return [r for r in self._records(entity_type) if index_key(r, fields) == wanted]

    async def delete_by_index(
        self,
        entity_type: EntityType,
        index: str,
        key: Any,
    ) -> int:
        fields = index_fields(entity_type, index)
        wanted = normalize_key(key)
        try:
            doomed = []
            for idx, row in enumerate(self._read_rows(entity_type), start=2):
                record = self._row_to_record(row)
                if record is not None and index_key(record, fields) == wanted:
                    doomed.append(idx)
            sheet = self._client.get_worksheet(entity_type)
            # Bottom-up so earlier row numbers stay valid
            for idx in reversed(doomed):
                sheet.delete_rows(idx)
            return len(doomed)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {entity_type} records: {e}")
