"""
Input Coercion and Validation

DESIGN DECISION: Validation for the ledger is PERMISSIVE on numbers and
STRICT on structure:

PERMISSIVE:
- Amounts and balances that cannot be parsed become zero
- Numeric strings ("12.50") are accepted anywhere a number is

STRICT:
- Account names must not be empty
- Transaction types must be income or expense
- Amounts must not be negative (the type carries the sign)

Structural problems raise LedgerValidationError so the caller can show
a message. Numeric problems are quietly coerced, matching how the wallet
forms have always behaved.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


class LedgerValidationError(ValueError):
    """Raised when input to a ledger operation is malformed."""
    pass


ZERO = Decimal("0")


def coerce_decimal(value: Any) -> Decimal:
    """
    Coerce a loosely-typed value into a Decimal.

    Accepts Decimal, int, float and numeric strings. Anything else
    (None, "", "abc", NaN, infinity) becomes Decimal("0").
    """
    if isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not result.is_finite():
        return ZERO
    return result


def require_account_name(name: Any) -> str:
    """Return the stripped account name, rejecting empty ones."""
    if name is None:
        raise LedgerValidationError("Account name is required")
    cleaned = str(name).strip()
    if not cleaned:
        raise LedgerValidationError("Account name cannot be empty")
    return cleaned


def require_amount(value: Any) -> Decimal:
    """Coerce a transaction amount and reject negative magnitudes."""
    amount = coerce_decimal(value)
    if amount < 0:
        raise LedgerValidationError(
            f"Transaction amount must not be negative (got {amount})"
        )
    return amount


def normalize_business_date(value: Any) -> str:
    """
    Normalize a transaction's business date to ISO YYYY-MM-DD.

    None or "" means today. Full timestamps are truncated to their
    date part. Anything that is not a date raises LedgerValidationError.
    """
    if value is None or value == "":
        return date.today().isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10]).isoformat()
        except ValueError:
            pass
    raise LedgerValidationError(f"Invalid transaction date: {value!r}")


def blank_to_none(value: Any) -> Optional[Any]:
    """Treat empty strings from forms and spreadsheet cells as missing."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
