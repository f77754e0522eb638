"""
Ledger Engine for Wallet Ledger

This module owns the accounts and transactions collections and is the
only component allowed to change them. It defines the operations for:
1. Accounts (create, read, delete)
2. Transactions (add, list, update, delete)
3. Whole-ledger operations (totals, export, import, clear)
4. Remote identity (attach, detach)

DESIGN DECISION: Balances are maintained INCREMENTALLY.
At every point, for every account:

    balance == initial balance + sum of signed amounts applied to it

Every mutation adjusts balances by exact deltas, persists the full state
once, then notifies observers. Nothing is recomputed from history.

The engine is an explicit object owned by the caller. There is no
module-level instance; observers register on the instance they use.
"""

from concurrent.futures import Executor
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from wallet_ledger.audit import AuditLogger
from wallet_ledger.backup import ImportPayloadError, build_export, parse_import
from wallet_ledger.config import get_settings
from wallet_ledger.config.settings import LocalStoreSettings
from wallet_ledger.models.ledger import (
    Account,
    LedgerChange,
    LedgerExport,
    Transaction,
    TransactionFilters,
    TransactionType,
    TransactionUpdate,
)
from wallet_ledger.queries import build_filters, filter_transactions, total_balance
from wallet_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsMirror,
    JSONFileSlotStore,
    LedgerStorage,
    RemoteMirror,
    SlotStore,
    select_storage,
)
from wallet_ledger.validation import (
    LedgerValidationError,
    coerce_decimal,
    normalize_business_date,
    require_account_name,
    require_amount,
)


logger = structlog.get_logger(__name__)

Observer = Callable[[], Any]


def _parse_type(value: Union[TransactionType, str]) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        raise LedgerValidationError(
            f"Transaction type must be 'income' or 'expense' (got {value!r})"
        )


class LedgerEngine:
    """
    The ledger state engine.

    Storage is chosen by identity: local slots only, or local slots
    mirrored to a RemoteMirror while an identity is attached. Callers
    never see which one is active.

    Not-found conditions are reported as None/False return values.
    Malformed input raises LedgerValidationError. Local storage failures
    raise StorageError. Remote mirror failures are logged and swallowed.
    """

    def __init__(
        self,
        slots: SlotStore,
        mirror: Optional[RemoteMirror] = None,
        settings: Optional[LocalStoreSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        executor: Optional[Executor] = None,
        owner_id: Optional[str] = None,
    ):
        """
        Args:
            slots: Local slot store holding the two collections
            mirror: Remote backend used while an identity is attached
            settings: Slot names; defaults to the environment settings
            executor: Optional executor for remote pushes
            owner_id: Identity to attach immediately
        """
        self._slots = slots
        self._mirror = mirror
        self._settings = settings or get_settings().local_store
        self._audit_logger = audit_logger or AuditLogger()
        self._executor = executor
        self._observers: list[Observer] = []

        self._storage = self._build_storage(owner_id)
        snapshot = self._storage.load()
        self._accounts: list[Account] = list(snapshot.accounts)
        self._transactions: list[Transaction] = list(snapshot.transactions)

    def _build_storage(self, owner_id: Optional[str]) -> LedgerStorage:
        return select_storage(
            self._slots,
            mirror=self._mirror,
            owner_id=owner_id,
            settings=self._settings,
            audit_logger=self._audit_logger,
            executor=self._executor,
        )

    @property
    def owner_id(self) -> Optional[str]:
        """Attached remote identity, None in local-only mode."""
        return self._storage.owner_id

    # =========================================================================
    # CHANGE NOTIFICATION
    # =========================================================================

    def subscribe(self, callback: Observer) -> Observer:
        """
        Register a zero-argument callback fired after every mutation.

        Callbacks run synchronously, in registration order, after the new
        state is persisted. Returns the callback so it can be used as a
        decorator.
        """
        if not callable(callback):
            raise TypeError("Observer must be callable")
        self._observers.append(callback)
        return callback

    def _notify(self) -> None:
        # Copy: an observer may subscribe others or mutate the ledger
        for callback in tuple(self._observers):
            callback()

    def _persist(self, change: LedgerChange) -> None:
        self._storage.persist(
            list(self._accounts),
            list(self._transactions),
            change,
        )

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def _account_index(self, account_id: str) -> Optional[int]:
        for idx, account in enumerate(self._accounts):
            if account.id == account_id:
                return idx
        return None

    def _transaction_index(self, transaction_id: str) -> Optional[int]:
        for idx, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return idx
        return None

    def create_account(self, name: str, initial_balance: Any = 0) -> Account:
        """
        Create a new account.

        An unparseable initial balance becomes 0.

        Raises:
            LedgerValidationError: If the name is empty
        """
        account = Account(
            name=require_account_name(name),
            balance=coerce_decimal(initial_balance),
            owner_id=self.owner_id,
        )
        self._accounts.append(account)

        self._persist(LedgerChange(upserted_accounts=[account]))
        self._audit_logger.log_account_created(
            account.id, account.name, account.balance, self.owner_id
        )
        self._notify()
        return account

    def get_accounts(self) -> list[Account]:
        """Every account, in creation order."""
        return list(self._accounts)

    def get_account(self, account_id: str) -> Optional[Account]:
        idx = self._account_index(account_id)
        return None if idx is None else self._accounts[idx]

    def _adjust_balance(self, account_id: str, delta: Decimal) -> Optional[Account]:
        """
        Add `delta` to an account's balance, in memory only.

        Always part of a larger operation, which persists and notifies.
        A missing account is left alone and None is returned.
        """
        idx = self._account_index(account_id)
        if idx is None:
            return None
        account = self._accounts[idx]
        updated = account.model_copy(update={"balance": account.balance + delta})
        self._accounts[idx] = updated
        return updated

    def delete_account(self, account_id: str) -> bool:
        """
        Delete an account.

        Its transactions are kept and keep pointing at the deleted id.
        They can still be listed and deleted, or moved to another account
        with update_transaction.
        """
        idx = self._account_index(account_id)
        if idx is None:
            return False
        removed = self._accounts.pop(idx)
        orphaned = sum(1 for t in self._transactions if t.account_id == removed.id)

        self._persist(LedgerChange(deleted_account_ids=[removed.id]))
        self._audit_logger.log_account_deleted(removed.id, orphaned, self.owner_id)
        self._notify()
        return True

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def add_transaction(
        self,
        type: Union[TransactionType, str],
        amount: Any,
        description: Optional[str],
        account_id: str,
        date: Any = None,
        category: Optional[str] = None,
    ) -> Optional[Transaction]:
        """
        Record an income or expense against an account.

        Returns:
            The new transaction, or None if the account does not exist

        Raises:
            LedgerValidationError: Unknown type, negative amount or bad date
        """
        account = self.get_account(account_id)
        if account is None:
            return None

        transaction_type = _parse_type(type)
        magnitude = require_amount(amount)
        delta = transaction_type.signed(magnitude)

        transaction = Transaction(
            type=transaction_type,
            amount=magnitude,
            description=(description or "").strip(),
            account_id=account.id,
            account_name=account.name,
            category=category,
            date=normalize_business_date(date),
            balance_after=account.balance + delta,
        )

        updated_account = self._adjust_balance(account.id, delta)
        self._transactions.insert(0, transaction)

        self._persist(
            LedgerChange(
                upserted_accounts=[updated_account],
                upserted_transactions=[transaction],
            )
        )
        self._audit_logger.log_transaction_added(
            transaction.id,
            account.id,
            delta,
            transaction.balance_after,
            self.owner_id,
        )
        self._notify()
        return transaction

    def get_transactions(
        self,
        filters: Union[TransactionFilters, Mapping[str, Any], None] = None,
        **kwargs: Any,
    ) -> list[Transaction]:
        """
        List transactions, newest business date first.

        Filters: account_id, type (exact), date_start, date_end (inclusive
        YYYY-MM-DD bounds). Pass a TransactionFilters, a mapping, or
        keyword arguments.
        """
        active = None
        if filters or kwargs:
            try:
                active = build_filters(filters, **kwargs)
            except ValidationError as e:
                raise LedgerValidationError(f"Invalid transaction filters: {e}")
        return filter_transactions(self._transactions, active)

    def get_account_transactions(self, account_id: str) -> list[Transaction]:
        return self.get_transactions(account_id=account_id)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        idx = self._transaction_index(transaction_id)
        return None if idx is None else self._transactions[idx]

    def update_transaction(
        self,
        transaction_id: str,
        updates: Union[TransactionUpdate, Mapping[str, Any]],
    ) -> bool:
        """
        Change a transaction and move its balance effect accordingly.

        The old signed amount is reversed on the old account, then the
        new signed amount is applied to the new account (which may be the
        same one). The stored record gets a fresh account_name and
        balance_after from the new account.

        Returns:
            False if the transaction or the target account does not exist;
            nothing is changed in that case

        Raises:
            LedgerValidationError: If `updates` is malformed
        """
        idx = self._transaction_index(transaction_id)
        if idx is None:
            return False

        try:
            update = (
                updates
                if isinstance(updates, TransactionUpdate)
                else TransactionUpdate.model_validate(updates)
            )
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid transaction update: {e}")

        old = self._transactions[idx]
        changes = update.changes()
        new_account = self.get_account(changes.get("account_id", old.account_id))
        if new_account is None:
            return False

        reversal = -old.signed_amount
        applied = changes.get("type", old.type).signed(
            changes.get("amount", old.amount)
        )

        # Build the replacement before touching any balance so that a bad
        # merge can never leave only one side applied.
        balance_after = new_account.balance + applied
        if new_account.id == old.account_id:
            balance_after += reversal
        merged = old.model_dump()
        merged.update(changes)
        merged.update(account_name=new_account.name, balance_after=balance_after)
        try:
            updated = Transaction.model_validate(merged)
        except ValidationError as e:
            raise LedgerValidationError(f"Invalid transaction update: {e}")

        touched = {}
        old_account = self._adjust_balance(old.account_id, reversal)
        if old_account is not None:
            touched[old_account.id] = old_account
        new_account = self._adjust_balance(new_account.id, applied)
        touched[new_account.id] = new_account
        self._transactions[idx] = updated

        self._persist(
            LedgerChange(
                upserted_accounts=list(touched.values()),
                upserted_transactions=[updated],
            )
        )
        self._audit_logger.log_transaction_updated(
            updated.id,
            old.account_id,
            updated.account_id,
            reversal,
            applied,
            self.owner_id,
        )
        self._notify()
        return True

    def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction and reverse its effect on its account.

        If the account was already deleted there is no balance to fix.
        """
        idx = self._transaction_index(transaction_id)
        if idx is None:
            return False

        transaction = self._transactions[idx]
        reversal = -transaction.signed_amount
        account = self._adjust_balance(transaction.account_id, reversal)
        del self._transactions[idx]

        self._persist(
            LedgerChange(
                upserted_accounts=[account] if account is not None else [],
                deleted_transaction_ids=[transaction.id],
            )
        )
        self._audit_logger.log_transaction_deleted(
            transaction.id, transaction.account_id, reversal, self.owner_id
        )
        self._notify()
        return True

    # =========================================================================
    # WHOLE LEDGER
    # =========================================================================

    def get_total_balance(self) -> Decimal:
        """Sum of all account balances, computed on demand."""
        return total_balance(self._accounts)

    def export_data(self) -> LedgerExport:
        """Immutable snapshot of the whole ledger."""
        export = build_export(self._accounts, self._transactions)
        self._audit_logger.log_data_exported(
            len(export.accounts), len(export.transactions)
        )
        return export

    def import_data(self, data: Union[LedgerExport, Mapping[str, Any]]) -> bool:
        """
        Replace the whole ledger with an export payload.

        Field names are normalized (camelCase or snake_case) and numbers
        coerced. Balances are taken as-is, not reconciled.

        Returns:
            False if the payload is malformed; existing state is untouched
        """
        try:
            snapshot = parse_import(data)
        except ImportPayloadError as e:
            self._audit_logger.log_import_rejected(str(e))
            return False

        kept_account_ids = {a.id for a in snapshot.accounts}
        kept_transaction_ids = {t.id for t in snapshot.transactions}
        change = LedgerChange(
            upserted_accounts=list(snapshot.accounts),
            upserted_transactions=list(snapshot.transactions),
            deleted_account_ids=[
                a.id for a in self._accounts if a.id not in kept_account_ids
            ],
            deleted_transaction_ids=[
                t.id for t in self._transactions if t.id not in kept_transaction_ids
            ],
        )

        self._accounts = list(snapshot.accounts)
        self._transactions = list(snapshot.transactions)

        self._persist(change)
        self._audit_logger.log_data_imported(
            len(self._accounts), len(self._transactions), self.owner_id
        )
        self._notify()
        return True

    def clear_all_data(self) -> None:
        """Delete every account and transaction."""
        change = LedgerChange(
            deleted_account_ids=[a.id for a in self._accounts],
            deleted_transaction_ids=[t.id for t in self._transactions],
        )
        self._accounts = []
        self._transactions = []

        self._storage.clear()
        self._persist(change)
        self._audit_logger.log_data_cleared(self.owner_id)
        self._notify()

    # =========================================================================
    # REMOTE IDENTITY
    # =========================================================================

    def attach_identity(self, owner_id: str) -> None:
        """
        Start mirroring for `owner_id`.

        The remote copy is authoritative: it replaces the in-memory
        ledger wholesale (unless it cannot be reached, in which case the
        local copy stays).

        Raises:
            ConnectionError: If no remote mirror is configured
        """
        if not owner_id:
            raise LedgerValidationError("owner_id cannot be empty")
        if self._mirror is None:
            raise ConnectionError("No remote mirror configured")

        self._storage = self._build_storage(owner_id)
        self._audit_logger.log_identity_attached(owner_id)

        snapshot = self._storage.load()
        self._accounts = list(snapshot.accounts)
        self._transactions = list(snapshot.transactions)
        self._notify()

    def detach_identity(self) -> None:
        """Stop mirroring. The in-memory ledger is kept as it is."""
        owner_id = self.owner_id
        if owner_id is None:
            return
        self._storage = self._build_storage(None)
        self._audit_logger.log_identity_detached(owner_id)


def create_ledger_engine(
    use_remote: bool = True,
    owner_id: Optional[str] = None,
    slots: Optional[SlotStore] = None,
) -> LedgerEngine:
    """
    Factory function to create a configured ledger engine.

    Args:
        use_remote: Whether to set up the Google Sheets mirror.
                    Set to False for purely local use.
        owner_id: Identity to attach right away
        slots: Slot store override; defaults to JSON files in the
               configured data directory

    Returns:
        A ready LedgerEngine
    """
    settings = get_settings()
    local_settings = settings.local_store
    slots = slots or JSONFileSlotStore(local_settings.data_dir)

    mirror = None
    if use_remote:
        try:
            mirror = GoogleSheetsMirror(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            # Remote not configured - continue local-only
            logger.warning("remote_mirror_unavailable", error=str(e))
            mirror = None

    app_settings = settings.app
    if app_settings.debug_mode:
        logger.info(
            "ledger_engine_created",
            environment=app_settings.app_environment,
            data_dir=str(local_settings.data_dir),
            remote=mirror is not None,
        )

    return LedgerEngine(
        slots,
        mirror=mirror,
        settings=local_settings,
        audit_logger=AuditLogger(),
        owner_id=owner_id if mirror is not None else None,
    )
