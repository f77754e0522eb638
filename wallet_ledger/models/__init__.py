"""
Data Models Package

This package contains all Pydantic models used by the wallet ledger.
Everything the engine stores or exchanges conforms to these schemas.
"""

from wallet_ledger.models.ledger import (
    EXPORT_VERSION,
    Account,
    LedgerChange,
    LedgerExport,
    LedgerSnapshot,
    Transaction,
    TransactionFilters,
    TransactionType,
    TransactionUpdate,
    isoformat_utc,
    new_record_id,
)
from wallet_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EXPORT_VERSION",
    "Account",
    "LedgerChange",
    "LedgerExport",
    "LedgerSnapshot",
    "Transaction",
    "TransactionFilters",
    "TransactionType",
    "TransactionUpdate",
    "isoformat_utc",
    "new_record_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
