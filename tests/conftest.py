"""Shared fixtures: in-memory slots and an in-memory remote mirror."""

import pytest

from wallet_ledger.config.settings import LocalStoreSettings
from wallet_ledger.engine import LedgerEngine
from wallet_ledger.models.ledger import Account, Transaction
from wallet_ledger.services.storage import (
    MemorySlotStore,
    RemoteMirror,
    RemoteSyncError,
)


class InMemoryMirror(RemoteMirror):
    """Remote mirror double keeping rows per owner in dicts."""

    def __init__(self):
        self.accounts: dict[str, dict[str, Account]] = {}
        self.transactions: dict[str, dict[str, Transaction]] = {}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RemoteSyncError(f"{operation} failed")

    def fetch_accounts(self, owner_id):
        self._call("fetch_accounts")
        return list(self.accounts.get(owner_id, {}).values())

    def fetch_transactions(self, owner_id):
        self._call("fetch_transactions")
        return list(self.transactions.get(owner_id, {}).values())

    def upsert_accounts(self, owner_id, accounts):
        self._call("upsert_accounts")
        rows = self.accounts.setdefault(owner_id, {})
        for account in accounts:
            rows[account.id] = account

    def upsert_transactions(self, owner_id, transactions):
        self._call("upsert_transactions")
        rows = self.transactions.setdefault(owner_id, {})
        for transaction in transactions:
            rows[transaction.id] = transaction

    def delete_accounts(self, owner_id, account_ids):
        self._call("delete_accounts")
        for account_id in account_ids:
            self.accounts.get(owner_id, {}).pop(account_id, None)

    def delete_transactions(self, owner_id, transaction_ids):
        self._call("delete_transactions")
        for transaction_id in transaction_ids:
            self.transactions.get(owner_id, {}).pop(transaction_id, None)


@pytest.fixture
def local_settings():
    return LocalStoreSettings(accounts_key="accounts", transactions_key="transactions")


@pytest.fixture
def slots():
    return MemorySlotStore()


@pytest.fixture
def mirror():
    return InMemoryMirror()


@pytest.fixture
def engine(slots, mirror, local_settings):
    return LedgerEngine(slots, mirror=mirror, settings=local_settings)
