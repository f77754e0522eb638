"""
Abstract Storage Interfaces

DESIGN DECISION: The engine talks to ONE storage interface. Whether the
ledger is local-only or also mirrored to a remote backend is decided by
which implementation is plugged in, never by branching inside every
operation.

Three layers:
1. SlotStore - durable key/value slots on this device
2. RemoteMirror - a per-identity copy of both collections elsewhere
3. LedgerStorage - what the engine sees, built from the two above

The interfaces are intentionally small. Every mutation rewrites both
local slots in full; only the mirror works row by row.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from wallet_ledger.models.ledger import (
    Account,
    LedgerChange,
    LedgerSnapshot,
    Transaction,
)


class SlotStore(ABC):
    """
    Named slots holding JSON-compatible values.

    This is the on-device persistence primitive (what a browser would
    call local storage).
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a slot.

        Returns:
            The stored value, or `default` if the slot is absent

        Raises:
            StorageError: If the slot exists but cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Overwrite a slot with a JSON-compatible value.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every slot."""
        pass


class LedgerStorage(ABC):
    """
    Storage for the two ledger collections, as seen by the engine.
    """

    @property
    @abstractmethod
    def owner_id(self) -> Optional[str]:
        """Identity this storage mirrors for, None when local-only."""
        pass

    @abstractmethod
    def load(self) -> LedgerSnapshot:
        """
        Load both collections.

        Absent data yields empty collections.
        """
        pass

    @abstractmethod
    def persist(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        change: LedgerChange,
    ) -> None:
        """
        Persist the full state after a mutation.

        Args:
            accounts: The complete account collection
            transactions: The complete transaction collection
            change: The rows this mutation touched

        Raises:
            StorageError: If the local write fails
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Wipe the local copy of the ledger."""
        pass


class RemoteMirror(ABC):
    """
    Abstract interface for the remote copy of the ledger.

    Rows are always scoped to an owner identity. Implementations raise
    RemoteSyncError on any backend failure; callers decide what to do
    with it.
    """

    @abstractmethod
    def fetch_accounts(self, owner_id: str) -> list[Account]:
        """All accounts owned by `owner_id`."""
        pass

    @abstractmethod
    def fetch_transactions(self, owner_id: str) -> list[Transaction]:
        """All transactions owned by `owner_id`."""
        pass

    @abstractmethod
    def upsert_accounts(self, owner_id: str, accounts: list[Account]) -> None:
        """Insert or replace accounts, keyed by id."""
        pass

    @abstractmethod
    def upsert_transactions(
        self,
        owner_id: str,
        transactions: list[Transaction],
    ) -> None:
        """Insert or replace transactions, keyed by id."""
        pass

    @abstractmethod
    def delete_accounts(self, owner_id: str, account_ids: list[str]) -> None:
        """Delete accounts by id. Unknown ids are ignored."""
        pass

    @abstractmethod
    def delete_transactions(self, owner_id: str, transaction_ids: list[str]) -> None:
        """Delete transactions by id. Unknown ids are ignored."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to, or is not configured for, a storage backend."""
    pass


class RemoteSyncError(StorageError):
    """A call to the remote mirror failed."""
    pass
