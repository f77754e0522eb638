"""
Transaction Queries

DESIGN DECISION: Queries are PURE.
They work on a snapshot copy of the collection and never reorder or
modify the engine's own list, so a renderer can iterate the result
while further mutations happen.

Two different notions of date order are used on purpose:
- Filter bounds compare raw ISO strings (YYYY-MM-DD sorts as dates)
- Display order compares real calendar dates, newest first
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

from wallet_ledger.models.ledger import (
    Account,
    Transaction,
    TransactionFilters,
)


FilterInput = Union[TransactionFilters, Mapping[str, Any], None]


def build_filters(filters: FilterInput = None, **kwargs: Any) -> TransactionFilters:
    """
    Normalize the accepted filter inputs into TransactionFilters.

    Accepts a TransactionFilters, a mapping in either naming style,
    keyword arguments, or a mix (keywords win).
    """
    if isinstance(filters, TransactionFilters):
        if not kwargs:
            return filters
        base = filters.model_dump(exclude_none=True)
    else:
        base = dict(filters or {})
    base.update(kwargs)
    return TransactionFilters.model_validate(base)


def matches(transaction: Transaction, filters: TransactionFilters) -> bool:
    """Does a single transaction pass every active filter?"""
    if filters.account_id and transaction.account_id != filters.account_id:
        return False
    if filters.type and transaction.type != filters.type:
        return False
    if filters.date_start and transaction.date < filters.date_start:
        return False
    if filters.date_end and transaction.date > filters.date_end:
        return False
    return True


def _display_key(transaction: Transaction) -> tuple:
    try:
        business_date = date.fromisoformat(transaction.date)
    except ValueError:
        business_date = date.min
    return business_date, transaction.created_at


def sort_newest_first(transactions: Iterable[Transaction]) -> list[Transaction]:
    """New list ordered by business date, then write time, newest first."""
    return sorted(transactions, key=_display_key, reverse=True)


def filter_transactions(
    transactions: Iterable[Transaction],
    filters: Optional[TransactionFilters] = None,
) -> list[Transaction]:
    """
    Apply filters to a snapshot and return it in display order.
    """
    snapshot = list(transactions)
    if filters is not None:
        snapshot = [t for t in snapshot if matches(t, filters)]
    return sort_newest_first(snapshot)


def total_balance(accounts: Iterable[Account]) -> Decimal:
    """Sum of every account's current balance."""
    return sum((account.balance for account in accounts), Decimal("0"))
