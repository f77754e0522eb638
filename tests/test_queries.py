"""
Tests for transaction queries
"""

from decimal import Decimal

from wallet_ledger.models.ledger import Account, Transaction, TransactionFilters
from wallet_ledger.queries import (
    build_filters,
    filter_transactions,
    sort_newest_first,
    total_balance,
)


def make(tid, date, type="expense", account_id="a", created_at="2024-01-01T00:00:00Z"):
    return Transaction(
        id=tid, type=type, amount=1, account_id=account_id,
        date=date, created_at=created_at,
    )


class TestBuildFilters:
    """Tests for filter normalization."""

    def test_keywords_win(self):
        """Test keyword arguments override the mapping."""
        filters = build_filters({"type": "income"}, type="expense")
        assert filters.type.value == "expense"

    def test_existing_filters_pass_through(self):
        """Test a TransactionFilters is used as-is."""
        filters = TransactionFilters(account_id="a")
        assert build_filters(filters) is filters

    def test_existing_filters_with_keywords(self):
        """Test keywords extend an existing TransactionFilters."""
        filters = build_filters(TransactionFilters(account_id="a"), date_end="2024-01-31")
        assert filters.account_id == "a"
        assert filters.date_end == "2024-01-31"


class TestFilterTransactions:
    """Tests for filtering and display order."""

    def test_no_filters_sorts_only(self):
        """Test every transaction is returned, newest date first."""
        transactions = [make("1", "2024-01-01"), make("2", "2024-03-01"), make("3", "2024-02-01")]
        assert [t.id for t in filter_transactions(transactions)] == ["2", "3", "1"]

    def test_inclusive_bounds(self):
        """Test transactions on the bounds are kept."""
        transactions = [make(str(d), f"2024-01-{d:02d}") for d in range(1, 11)]
        result = filter_transactions(
            transactions,
            TransactionFilters(date_start="2024-01-03", date_end="2024-01-05"),
        )
        assert [t.date for t in result] == ["2024-01-05", "2024-01-04", "2024-01-03"]

    def test_does_not_mutate_input(self):
        """Test the input list keeps its order."""
        transactions = [make("1", "2024-01-01"), make("2", "2024-03-01")]
        filter_transactions(transactions, TransactionFilters(type="expense"))
        assert [t.id for t in transactions] == ["1", "2"]

    def test_created_at_breaks_ties(self):
        """Test same-day transactions show the latest write first."""
        early = make("early", "2024-01-01", created_at="2024-01-01T08:00:00Z")
        late = make("late", "2024-01-01", created_at="2024-01-01T20:00:00Z")
        assert [t.id for t in sort_newest_first([early, late])] == ["late", "early"]

    def test_account_and_type(self):
        """Test account and type filters combine."""
        transactions = [
            make("1", "2024-01-01", "income", "a"),
            make("2", "2024-01-02", "expense", "a"),
            make("3", "2024-01-03", "expense", "b"),
        ]
        result = filter_transactions(
            transactions, TransactionFilters(account_id="a", type="expense")
        )
        assert [t.id for t in result] == ["2"]


class TestTotalBalance:
    """Tests for total_balance."""

    def test_sum(self):
        """Test balances are summed exactly."""
        accounts = [Account(name="A", balance="0.1"), Account(name="B", balance="0.2")]
        assert total_balance(accounts) == Decimal("0.3")

    def test_empty(self):
        """Test no accounts sum to zero."""
        assert total_balance([]) == Decimal("0")
