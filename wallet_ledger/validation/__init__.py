"""Validation package."""

from wallet_ledger.validation.validator import (
    LedgerValidationError,
    blank_to_none,
    coerce_decimal,
    normalize_business_date,
    require_account_name,
    require_amount,
)

__all__ = [
    "LedgerValidationError",
    "blank_to_none",
    "coerce_decimal",
    "normalize_business_date",
    "require_account_name",
    "require_amount",
]
