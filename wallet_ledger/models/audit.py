"""
Audit Models for Wallet Ledger

Every mutation of the ledger is logged as a structured event.
This provides:
1. Traceability of every balance change
2. Debugging information when a remote sync fails
3. A readable history of imports, exports and identity changes

DESIGN DECISION: Audit events describe what happened. They never carry
enough data to rebuild the ledger, and nothing reads them back.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every public mutating operation of the engine has its own event type.
    """
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Whole-ledger operations
    DATA_EXPORTED = "data_exported"
    DATA_IMPORTED = "data_imported"
    DATA_IMPORT_REJECTED = "data_import_rejected"
    DATA_CLEARED = "data_cleared"

    # Remote mirror
    IDENTITY_ATTACHED = "identity_attached"
    IDENTITY_DETACHED = "identity_detached"
    REMOTE_LOADED = "remote_loaded"
    REMOTE_SYNC_FAILED = "remote_sync_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'ledger')"
    )
    entity_id: Optional[str] = None
    owner_id: Optional[str] = Field(
        default=None,
        description="Remote identity active when the event happened"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _money(value: Decimal) -> str:
    return str(value)


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, name, balance)
        event = AuditEventBuilder.remote_sync_failed("upsert_accounts", error)
    """

    @staticmethod
    def account_created(
        account_id: str,
        name: str,
        balance: Decimal,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            description=f"Account created: {name}",
            details={"name": name, "initial_balance": _money(balance)},
        )

    @staticmethod
    def account_deleted(
        account_id: str,
        orphaned_transactions: int,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=(
                AuditSeverity.WARNING if orphaned_transactions else AuditSeverity.INFO
            ),
            entity_type="account",
            entity_id=account_id,
            owner_id=owner_id,
            description=(
                f"Account deleted, {orphaned_transactions} transactions left orphaned"
            ),
            details={"orphaned_transactions": orphaned_transactions},
        )

    @staticmethod
    def transaction_added(
        transaction_id: str,
        account_id: str,
        signed_amount: Decimal,
        balance_after: Decimal,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            description=f"Transaction added: {_money(signed_amount)}",
            details={
                "account_id": account_id,
                "signed_amount": _money(signed_amount),
                "balance_after": _money(balance_after),
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        old_account_id: str,
        new_account_id: str,
        reversed_amount: Decimal,
        applied_amount: Decimal,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            description="Transaction updated",
            details={
                "old_account_id": old_account_id,
                "new_account_id": new_account_id,
                "reversed_amount": _money(reversed_amount),
                "applied_amount": _money(applied_amount),
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        account_id: str,
        reversed_amount: Decimal,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            owner_id=owner_id,
            description="Transaction deleted",
            details={
                "account_id": account_id,
                "reversed_amount": _money(reversed_amount),
            },
        )

    @staticmethod
    def data_exported(accounts: int, transactions: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="ledger",
            description=f"Exported {accounts} accounts and {transactions} transactions",
            details={"accounts": accounts, "transactions": transactions},
        )

    @staticmethod
    def data_imported(
        accounts: int,
        transactions: int,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            entity_type="ledger",
            owner_id=owner_id,
            description=f"Imported {accounts} accounts and {transactions} transactions",
            details={"accounts": accounts, "transactions": transactions},
        )

    @staticmethod
    def data_import_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            description="Import payload rejected",
            error_message=reason,
        )

    @staticmethod
    def data_cleared(owner_id: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            owner_id=owner_id,
            description="All ledger data cleared",
        )

    @staticmethod
    def identity_attached(owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_ATTACHED,
            entity_type="identity",
            entity_id=owner_id,
            owner_id=owner_id,
            description="Remote identity attached",
        )

    @staticmethod
    def identity_detached(owner_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IDENTITY_DETACHED,
            entity_type="identity",
            entity_id=owner_id,
            description="Remote identity detached",
        )

    @staticmethod
    def remote_loaded(owner_id: str, accounts: int, transactions: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_LOADED,
            entity_type="ledger",
            owner_id=owner_id,
            description=f"Loaded {accounts} accounts and {transactions} transactions from remote",
            details={"accounts": accounts, "transactions": transactions},
        )

    @staticmethod
    def remote_sync_failed(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="remote",
            owner_id=owner_id,
            description=f"Remote mirror call failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
