"""
Google Sheets Remote Mirror

DESIGN DECISION: Google Sheets is used as the remote mirror because:
1. The owner can open their ledger directly in Sheets
2. No database server to run
3. Built-in backup (Google's infrastructure)

Each worksheet plays the role of a table:
- "accounts":     one row per account
- "transactions": one row per transaction
Every row carries an `owner_id` column; all reads and writes are scoped
to it. Upserts are keyed by `id`.

Column names are the snake_case field names. This module is the only
place that translates between model objects and remote rows.

TRADEOFFS:
- Each call reads the whole worksheet (fine for a personal ledger)
- No transactions across worksheets; callers treat every call as
  independent and best-effort
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Type, TypeVar

import gspread
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from wallet_ledger.config import get_settings
from wallet_ledger.config.settings import GoogleSheetsSettings
from wallet_ledger.models.ledger import Account, LedgerRecord, Transaction
from wallet_ledger.services.storage.interface import (
    ConnectionError,
    RemoteMirror,
    RemoteSyncError,
)


# Column mappings for the accounts worksheet
ACCOUNT_COLUMNS = [
    "id",
    "owner_id",
    "name",
    "balance",
    "created_at",
]

# Column mappings for the transactions worksheet
TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "type",
    "amount",
    "description",
    "account_id",
    "account_name",
    "category",
    "date",
    "created_at",
    "balance_after",
]

OWNER_COLUMN = "owner_id"

RecordT = TypeVar("RecordT", bound=LedgerRecord)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation. Establishing the
    connection is retried; row operations are not.
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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the accounts worksheet."""
        return self._get_or_create_sheet(
            self._settings.accounts_sheet_name, ACCOUNT_COLUMNS
        )

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )


def _to_cell(value: Any) -> str:
    """Render one field as a spreadsheet cell."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def record_to_row(record: LedgerRecord, owner_id: str, columns: list[str]) -> list[str]:
    """Convert a model to a row in the given column order."""
    data = record.model_dump()
    data[OWNER_COLUMN] = owner_id
    return [_to_cell(data.get(column)) for column in columns]


def row_to_record(row: list, columns: list[str], model: Type[RecordT]) -> RecordT:
    """
    Convert a spreadsheet row back into a model.

    Missing trailing cells are treated as empty.
    """
    padded = list(row) + [""] * (len(columns) - len(row))
    return model.model_validate(dict(zip(columns, padded)))


class GoogleSheetsMirror(RemoteMirror):
    """
    Google Sheets implementation of the remote mirror.

    Any failure talking to Sheets surfaces as RemoteSyncError.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- reads -------------------------------------------------------------

    def _fetch(
        self,
        sheet: gspread.Worksheet,
        owner_id: str,
        columns: list[str],
        model: Type[RecordT],
    ) -> list[RecordT]:
        owner_index = columns.index(OWNER_COLUMN)
        records = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            if len(row) <= owner_index or row[owner_index] != owner_id:
                continue
            try:
                records.append(row_to_record(row, columns, model))
            except ValidationError:
                continue  # Skip malformed rows
        return records

    def fetch_accounts(self, owner_id: str) -> list[Account]:
        try:
            sheet = self._client.get_accounts_sheet()
            return self._fetch(sheet, owner_id, ACCOUNT_COLUMNS, Account)
        except Exception as e:
            raise RemoteSyncError(f"Failed to fetch accounts: {e}")

    def fetch_transactions(self, owner_id: str) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            return self._fetch(sheet, owner_id, TRANSACTION_COLUMNS, Transaction)
        except Exception as e:
            raise RemoteSyncError(f"Failed to fetch transactions: {e}")

    # -- writes ------------------------------------------------------------

    def _owned_row_numbers(
        self,
        all_rows: list[list],
        owner_id: str,
        columns: list[str],
    ) -> dict[str, int]:
        """Map record id -> 1-based sheet row number for the owner's rows."""
        owner_index = columns.index(OWNER_COLUMN)
        numbers = {}
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] and len(row) > owner_index and row[owner_index] == owner_id:
                numbers[row[0]] = idx
        return numbers

    def _upsert(
        self,
        sheet: gspread.Worksheet,
        owner_id: str,
        records: list[LedgerRecord],
        columns: list[str],
    ) -> None:
        existing = self._owned_row_numbers(sheet.get_all_values(), owner_id, columns)

        new_rows = []
        for record in records:
            row = record_to_row(record, owner_id, columns)
            row_number = existing.get(row[0])
            if row_number is None:
                new_rows.append(row)
            else:
                sheet.update(range_name=f"A{row_number}", values=[row])

        if new_rows:
            sheet.append_rows(new_rows, value_input_option="RAW")

    def _delete(
        self,
        sheet: gspread.Worksheet,
        owner_id: str,
        record_ids: list[str],
        columns: list[str],
    ) -> None:
        existing = self._owned_row_numbers(sheet.get_all_values(), owner_id, columns)
        row_numbers = [existing[rid] for rid in set(record_ids) if rid in existing]

        # Bottom-up so earlier deletions don't shift later row numbers
        for row_number in sorted(row_numbers, reverse=True):
            sheet.delete_rows(row_number)

    def upsert_accounts(self, owner_id: str, accounts: list[Account]) -> None:
        try:
            sheet = self._client.get_accounts_sheet()
            self._upsert(sheet, owner_id, accounts, ACCOUNT_COLUMNS)
        except Exception as e:
            raise RemoteSyncError(f"Failed to upsert accounts: {e}")

    def upsert_transactions(
        self,
        owner_id: str,
        transactions: list[Transaction],
    ) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            self._upsert(sheet, owner_id, transactions, TRANSACTION_COLUMNS)
        except Exception as e:
            raise RemoteSyncError(f"Failed to upsert transactions: {e}")

    def delete_accounts(self, owner_id: str, account_ids: list[str]) -> None:
        try:
            sheet = self._client.get_accounts_sheet()
            self._delete(sheet, owner_id, account_ids, ACCOUNT_COLUMNS)
        except Exception as e:
            raise RemoteSyncError(f"Failed to delete accounts: {e}")

    def delete_transactions(self, owner_id: str, transaction_ids: list[str]) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            self._delete(sheet, owner_id, transaction_ids, TRANSACTION_COLUMNS)
        except Exception as e:
            raise RemoteSyncError(f"Failed to delete transactions: {e}")
