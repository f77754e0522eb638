"""Transaction query package."""

from wallet_ledger.queries.filters import (
    build_filters,
    filter_transactions,
    matches,
    sort_newest_first,
    total_balance,
)

__all__ = [
    "build_filters",
    "filter_transactions",
    "matches",
    "sort_newest_first",
    "total_balance",
]
