"""
Ledger Export and Import

The backup file is a JSON document:

    {
      "accounts": [...],
      "transactions": [...],
      "exportDate": "2024-05-01T09:30:00.000Z",
      "version": "1.0"
    }

Records use the canonical camelCase names. Older backups (and rows
copied from the remote mirror) use snake_case names such as
`account_id` and `balance_after`; both are accepted on import and
normalized to the same internal records.

IMPORTANT: Import normalizes field names and numbers, nothing else.
Balances are NOT reconciled against the transaction history; an
inconsistent file is accepted as-is.
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from wallet_ledger.config import get_settings
from wallet_ledger.models.ledger import (
    Account,
    LedgerExport,
    LedgerSnapshot,
    Transaction,
)


class ImportPayloadError(ValueError):
    """The import payload is malformed."""
    pass


ImportInput = Union[LedgerExport, Mapping[str, Any]]


def build_export(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> LedgerExport:
    """Immutable export of both collections, stamped with the current time."""
    return LedgerExport(accounts=list(accounts), transactions=list(transactions))


def _records(data: Mapping[str, Any], key: str) -> list:
    if key not in data or data[key] is None:
        raise ImportPayloadError(f"Import payload is missing '{key}'")
    records = data[key]
    if not isinstance(records, (list, tuple)):
        raise ImportPayloadError(f"'{key}' must be a list, got {type(records).__name__}")
    return list(records)


def parse_import(data: ImportInput) -> LedgerSnapshot:
    """
    Normalize an import payload into ledger records.

    Raises:
        ImportPayloadError: If either collection is missing or any record
                            cannot be normalized
    """
    if isinstance(data, LedgerExport):
        return LedgerSnapshot(
            accounts=list(data.accounts),
            transactions=list(data.transactions),
        )
    if not isinstance(data, Mapping):
        raise ImportPayloadError(
            f"Import payload must be an object, got {type(data).__name__}"
        )

    account_records = _records(data, "accounts")
    transaction_records = _records(data, "transactions")

    try:
        accounts = [Account.model_validate(record) for record in account_records]
        transactions = [
            Transaction.model_validate(record) for record in transaction_records
        ]
    except ValidationError as e:
        raise ImportPayloadError(f"Import payload contains invalid records: {e}")

    return LedgerSnapshot(accounts=accounts, transactions=transactions)


def backup_filename(prefix: str, on: Optional[date] = None) -> str:
    """`<prefix>-YYYY-MM-DD.json`"""
    return f"{prefix}-{(on or date.today()).isoformat()}.json"


def write_backup(
    export: LedgerExport,
    directory: Union[str, Path],
    prefix: Optional[str] = None,
) -> Path:
    """
    Write an export to `<directory>/<prefix>-YYYY-MM-DD.json`.

    The prefix defaults to the configured backup_prefix.

    Returns:
        Path of the written file
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(prefix or get_settings().app.backup_prefix)
    path.write_text(export.to_json(), encoding="utf-8")
    return path


def read_backup(path: Union[str, Path]) -> dict:
    """
    Read a backup file.

    Raises:
        ImportPayloadError: If the file is unreadable or not a JSON object
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise ImportPayloadError(f"Cannot read backup file {path}: {e}")
    except json.JSONDecodeError as e:
        raise ImportPayloadError(f"Backup file {path} is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ImportPayloadError(f"Backup file {path} does not hold a JSON object")
    return data
