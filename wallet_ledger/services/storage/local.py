"""
Local Store Implementation

The ledger lives in two named slots, "accounts" and "transactions",
each holding a JSON array of canonical (camelCase) records.

DESIGN DECISION: Every mutation rewrites BOTH slots in full.
TRADEOFFS:
- Simple and always consistent (no partial or delta files)
- Write cost grows with the ledger (fine for a personal wallet)
"""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from wallet_ledger.config import get_settings
from wallet_ledger.config.settings import LocalStoreSettings
from wallet_ledger.models.ledger import (
    Account,
    LedgerChange,
    LedgerSnapshot,
    Transaction,
)
from wallet_ledger.services.storage.interface import (
    LedgerStorage,
    SlotStore,
    StorageError,
)


class JSONFileSlotStore(SlotStore):
    """
    One JSON file per slot inside a directory.

    `<directory>/accounts.json`, `<directory>/transactions.json`, ...
    """

    def __init__(self, directory: Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StorageError(f"Slot '{key}' is not valid JSON: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read slot '{key}': {e}")

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(value), encoding="utf-8")
            tmp_path.replace(path)
        except (OSError, TypeError) as e:
            raise StorageError(f"Failed to write slot '{key}': {e}")

    def clear(self) -> None:
        if not self._directory.exists():
            return
        try:
            for path in self._directory.glob("*.json"):
                path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to clear slots: {e}")


class MemorySlotStore(SlotStore):
    """
    Dict-backed slots for tests and throwaway sessions.

    Values are stored as serialized JSON so callers never share
    structures with the store.
    """

    def __init__(self):
        self._slots: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._slots:
            return default
        return json.loads(self._slots[key])

    def set(self, key: str, value: Any) -> None:
        try:
            self._slots[key] = json.dumps(value)
        except TypeError as e:
            raise StorageError(f"Failed to write slot '{key}': {e}")

    def clear(self) -> None:
        self._slots.clear()

    def keys(self) -> list[str]:
        return list(self._slots)


class LocalLedgerStorage(LedgerStorage):
    """
    Local-only ledger storage on top of a SlotStore.

    Used when no remote identity is attached.
    """

    def __init__(
        self,
        slots: SlotStore,
        settings: Optional[LocalStoreSettings] = None,
    ):
        self._slots = slots
        self._settings = settings or get_settings().local_store

    @property
    def owner_id(self) -> Optional[str]:
        return None

    @property
    def slots(self) -> SlotStore:
        return self._slots

    def _read_records(self, key: str) -> list:
        records = self._slots.get(key, [])
        if records is None:
            return []
        if not isinstance(records, list):
            raise StorageError(f"Slot '{key}' does not hold a list")
        return records

    def load(self) -> LedgerSnapshot:
        """Read both slots. An absent slot is an empty collection."""
        try:
            accounts = [
                Account.model_validate(record)
                for record in self._read_records(self._settings.accounts_key)
            ]
            transactions = [
                Transaction.model_validate(record)
                for record in self._read_records(self._settings.transactions_key)
            ]
        except ValidationError as e:
            raise StorageError(f"Local ledger data is malformed: {e}")

        return LedgerSnapshot(accounts=accounts, transactions=transactions)

    def write_snapshot(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
    ) -> None:
        """Rewrite both slots in full."""
        self._slots.set(
            self._settings.accounts_key,
            [account.to_record() for account in accounts],
        )
        self._slots.set(
            self._settings.transactions_key,
            [transaction.to_record() for transaction in transactions],
        )

    def persist(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        change: LedgerChange,
    ) -> None:
        self.write_snapshot(accounts, transactions)

    def clear(self) -> None:
        self._slots.clear()
