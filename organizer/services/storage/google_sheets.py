"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets can stand in for the remote key/value service:
1. Non-technical users can view their data directly in Sheets
2. No server to deploy
3. Built-in backup (Google's infrastructure)

One worksheet holds one row per key: key | value (JSON) | updated_at.

TRADEOFFS:
- A whole aggregate lives in one cell (fine for personal data volumes)
- No transactions, but the protocol only ever upserts one row
- gspread is blocking, so calls run in a worker thread
"""

import asyncio
import json
from typing import Any, Optional

import gspread
import structlog
from google.auth.exceptions import GoogleAuthError, TransportError
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from organizer.config import GoogleSheetsSettings, get_settings
from organizer.models.aggregate import utc_now
from organizer.services.storage.interface import (
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
)


logger = structlog.get_logger(__name__)

# Column layout of the key/value worksheet
DATA_COLUMNS = [
    "key",
    "value",
    "updated_at",
]


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
                raise RemoteUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to connect to Google Sheets: {e}")

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
                raise RemoteStoreError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_data_sheet(self) -> gspread.Worksheet:
        """Get or create the key/value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.data_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.data_sheet_name,
                rows=100,
                cols=len(DATA_COLUMNS),
            )
            sheet.append_row(DATA_COLUMNS)
        return sheet


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """
    Google Sheets implementation of the remote store.

    Values are JSON-serialized into the "value" column.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _find_row(all_rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index holding a key, skipping the header."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upsert_row(self, key: str, value_json: str) -> None:
        sheet = self._client.get_data_sheet()
        row_idx = self._find_row(sheet.get_all_values(), key)
        updated_at = utc_now().isoformat()

        if row_idx is None:
            sheet.append_row([key, value_json, updated_at])
        else:
            sheet.update_cell(row_idx, 2, value_json)
            sheet.update_cell(row_idx, 3, updated_at)

    def _read_value(self, key: str) -> Optional[str]:
        sheet = self._client.get_data_sheet()
        all_rows = sheet.get_all_values()
        row_idx = self._find_row(all_rows, key)
        if row_idx is None:
            return None
        row = all_rows[row_idx - 1]
        return row[1] if len(row) > 1 and row[1] else None

    async def save(self, key: str, value: dict[str, Any]) -> bool:
        value_json = json.dumps(value, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._upsert_row, key, value_json)
        except RemoteStoreError:
            raise
        except (OSError, TransportError) as e:
            raise RemoteUnavailableError(f"Google Sheets unreachable: {e}")
        except GoogleAuthError as e:
            raise RemoteStoreError(f"Google authentication failed: {e}")
        except gspread.exceptions.GSpreadException as e:
            raise RemoteStoreError(f"Failed to save {key!r}: {e}")

        logger.info("sheets_document_saved", key=key, bytes=len(value_json))
        return True

    async def load(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = await asyncio.to_thread(self._read_value, key)
        except RemoteStoreError:
            raise
        except (OSError, TransportError) as e:
            raise RemoteUnavailableError(f"Google Sheets unreachable: {e}")
        except GoogleAuthError as e:
            raise RemoteStoreError(f"Google authentication failed: {e}")
        except gspread.exceptions.GSpreadException as e:
            raise RemoteStoreError(f"Failed to load {key!r}: {e}")

        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise RemoteStoreError(f"Stored value for {key!r} is not JSON: {e}")
        if not isinstance(value, dict):
            raise RemoteStoreError(
                f"Stored value for {key!r} is {type(value).__name__}, expected object"
            )
        return value
