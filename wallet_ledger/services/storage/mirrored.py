"""
Local + Remote Mirror Storage

Used while a remote identity is attached.

DESIGN DECISION: Local state is the durable source of truth for the
session. Every persist writes the local slots FIRST and unconditionally,
then pushes the changed rows to the mirror on a best-effort basis:
- Remote failures are logged and suppressed, never raised
- Nothing is queued or retried
- A failed upsert of one collection does not block the other
- Pushes reach the mirror one at a time, in mutation order, even on a
  multi-worker executor

At load time the remote copy is authoritative: whatever the mirror
holds for the identity replaces the local slots.
"""

import threading
from concurrent.futures import Executor
from typing import Callable, Optional

from wallet_ledger.audit import AuditLogger
from wallet_ledger.config.settings import LocalStoreSettings
from wallet_ledger.models.ledger import (
    Account,
    LedgerChange,
    LedgerSnapshot,
    Transaction,
)
from wallet_ledger.services.storage.interface import (
    ConnectionError,
    LedgerStorage,
    RemoteMirror,
    SlotStore,
)
from wallet_ledger.services.storage.local import LocalLedgerStorage


class MirroredLedgerStorage(LedgerStorage):
    """
    Local slots plus a best-effort remote mirror for one identity.
    """

    def __init__(
        self,
        slots: SlotStore,
        mirror: RemoteMirror,
        owner_id: str,
        settings: Optional[LocalStoreSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        executor: Optional[Executor] = None,
    ):
        """
        Args:
            slots: Local slot store, always written first
            mirror: Remote backend
            owner_id: Identity every remote row is scoped to
            executor: If given, remote pushes are submitted to it instead
                      of running inline after the local write. Any
                      number of workers is fine; pushes still apply
                      one at a time in submission order
        """
        if not owner_id:
            raise ValueError("owner_id is required for mirrored storage")
        self._local = LocalLedgerStorage(slots, settings)
        self._mirror = mirror
        self._owner_id = owner_id
        self._audit_logger = audit_logger or AuditLogger()
        self._executor = executor

        self._push_turn = threading.Condition()
        self._next_ticket = 0
        self._serving_ticket = 0

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    def load(self) -> LedgerSnapshot:
        """
        Fetch both collections for the identity and adopt them locally.

        If the mirror is unreachable the local slots are used instead.
        """
        try:
            accounts = self._mirror.fetch_accounts(self._owner_id)
            transactions = self._mirror.fetch_transactions(self._owner_id)
        except Exception as e:
            self._audit_logger.log_remote_sync_failed("fetch", str(e), self._owner_id)
            return self._local.load()

        # Remote row order is arbitrary; keep the newest-first insertion order
        transactions = sorted(transactions, key=lambda t: t.created_at, reverse=True)

        self._local.write_snapshot(accounts, transactions)
        self._audit_logger.log_remote_loaded(
            self._owner_id, len(accounts), len(transactions)
        )
        return LedgerSnapshot(accounts=accounts, transactions=transactions)

    def persist(
        self,
        accounts: list[Account],
        transactions: list[Transaction],
        change: LedgerChange,
    ) -> None:
        self._local.persist(accounts, transactions, change)

        if change.is_empty:
            return
        with self._push_turn:
            ticket = self._next_ticket
            self._next_ticket += 1
        if self._executor is not None:
            try:
                self._executor.submit(self._push_in_order, ticket, change)
                return
            except RuntimeError:
                # Executor already shut down
                pass
        self._push_in_order(ticket, change)

    def _push_in_order(self, ticket: int, change: LedgerChange) -> None:
        with self._push_turn:
            self._push_turn.wait_for(lambda: self._serving_ticket == ticket)
            try:
                self.push(change)
            finally:
                self._serving_ticket += 1
                self._push_turn.notify_all()

    def push(self, change: LedgerChange) -> None:
        """Send one change to the mirror. Never raises."""
        if change.upserted_accounts:
            self._attempt(
                "upsert_accounts",
                self._mirror.upsert_accounts,
                list(change.upserted_accounts),
            )
        if change.upserted_transactions:
            self._attempt(
                "upsert_transactions",
                self._mirror.upsert_transactions,
                list(change.upserted_transactions),
            )
        if change.deleted_transaction_ids:
            self._attempt(
                "delete_transactions",
                self._mirror.delete_transactions,
                list(change.deleted_transaction_ids),
            )
        if change.deleted_account_ids:
            self._attempt(
                "delete_accounts",
                self._mirror.delete_accounts,
                list(change.deleted_account_ids),
            )

    def _attempt(self, operation: str, call: Callable, rows: list) -> bool:
        try:
            call(self._owner_id, rows)
            return True
        except Exception as e:
            self._audit_logger.log_remote_sync_failed(operation, str(e), self._owner_id)
            return False

    def clear(self) -> None:
        self._local.clear()


def select_storage(
    slots: SlotStore,
    mirror: Optional[RemoteMirror] = None,
    owner_id: Optional[str] = None,
    settings: Optional[LocalStoreSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
    executor: Optional[Executor] = None,
) -> LedgerStorage:
    """
    Pick the storage implementation for the current identity.

    No identity means local-only. An identity without a mirror is a
    configuration error.
    """
    if not owner_id:
        return LocalLedgerStorage(slots, settings)
    if mirror is None:
        raise ConnectionError("A remote identity requires a configured remote mirror")
    return MirroredLedgerStorage(
        slots,
        mirror,
        owner_id,
        settings=settings,
        audit_logger=audit_logger,
        executor=executor,
    )
