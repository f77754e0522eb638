"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged as a structured event.
This provides:
1. Traceability of every balance change
2. Visibility into remote mirror failures (which are never raised)
3. Debugging capability

The audit logger:
- Is synchronous, like the engine that calls it
- Gracefully handles failures (a broken log sink never breaks a mutation)
"""

from decimal import Decimal
from typing import Optional

import structlog

from wallet_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service for the ledger.

    Events go to the structured local log. Nothing is persisted:
    the ledger itself is the durable record.
    """

    def __init__(self, logger_name: str = "wallet_ledger.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log sink failed; never raises.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False

        return True

    def log_account_created(
        self,
        account_id: str,
        name: str,
        balance: Decimal,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log account creation."""
        self.log(AuditEventBuilder.account_created(account_id, name, balance, owner_id))

    def log_account_deleted(
        self,
        account_id: str,
        orphaned_transactions: int,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log account deletion and how many transactions it orphaned."""
        self.log(
            AuditEventBuilder.account_deleted(account_id, orphaned_transactions, owner_id)
        )

    def log_transaction_added(
        self,
        transaction_id: str,
        account_id: str,
        signed_amount: Decimal,
        balance_after: Decimal,
        owner_id: Optional[str] = None,
    ) -> None:
        self.log(
            AuditEventBuilder.transaction_added(
                transaction_id, account_id, signed_amount, balance_after, owner_id
            )
        )

    def log_transaction_updated(
        self,
        transaction_id: str,
        old_account_id: str,
        new_account_id: str,
        reversed_amount: Decimal,
        applied_amount: Decimal,
        owner_id: Optional[str] = None,
    ) -> None:
        self.log(
            AuditEventBuilder.transaction_updated(
                transaction_id,
                old_account_id,
                new_account_id,
                reversed_amount,
                applied_amount,
                owner_id,
            )
        )

    def log_transaction_deleted(
        self,
        transaction_id: str,
        account_id: str,
        reversed_amount: Decimal,
        owner_id: Optional[str] = None,
    ) -> None:
        self.log(
            AuditEventBuilder.transaction_deleted(
                transaction_id, account_id, reversed_amount, owner_id
            )
        )

    def log_data_exported(self, accounts: int, transactions: int) -> None:
        self.log(AuditEventBuilder.data_exported(accounts, transactions))

    def log_data_imported(
        self,
        accounts: int,
        transactions: int,
        owner_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.data_imported(accounts, transactions, owner_id))

    def log_import_rejected(self, reason: str) -> None:
        """Log a rejected import payload."""
        self.log(AuditEventBuilder.data_import_rejected(reason))

    def log_data_cleared(self, owner_id: Optional[str] = None) -> None:
        self.log(AuditEventBuilder.data_cleared(owner_id))

    def log_identity_attached(self, owner_id: str) -> None:
        self.log(AuditEventBuilder.identity_attached(owner_id))

    def log_identity_detached(self, owner_id: str) -> None:
        self.log(AuditEventBuilder.identity_detached(owner_id))

    def log_remote_loaded(self, owner_id: str, accounts: int, transactions: int) -> None:
        self.log(AuditEventBuilder.remote_loaded(owner_id, accounts, transactions))

    def log_remote_sync_failed(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log a suppressed remote mirror failure."""
        self.log(AuditEventBuilder.remote_sync_failed(operation, error_message, owner_id))
