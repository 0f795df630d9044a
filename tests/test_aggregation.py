"""Tests for the aggregation engine."""

from datetime import date
from decimal import Decimal

import pytest

from finance_tracker.ledger.aggregation import (
    filter_by_date_range,
    goal_progress,
    group_by_category,
    group_by_type,
    month_predicate,
    monthly_history,
    shift_month,
    summarize,
)
from finance_tracker.models.ledger import TransactionCategory, TransactionType


@pytest.fixture
def march_ledger(make_transaction):
    return [
        make_transaction(type=TransactionType.INCOME, category=TransactionCategory.INCOME_SOURCE,
                         amount=Decimal("5000"), date="2025-03-05"),
        make_transaction(type=TransactionType.FIXED_EXPENSE, category=TransactionCategory.RENT_HOME_LOAN,
                         amount=Decimal("1500"), date="2025-03-01"),
        make_transaction(type=TransactionType.VARIABLE_EXPENSE, category=TransactionCategory.SUPERMARKET_PURCHASES,
                         amount=Decimal("600.50"), date="2025-03-12"),
        make_transaction(type=TransactionType.VARIABLE_EXPENSE, category=TransactionCategory.FUEL,
                         amount=Decimal("200"), date="2025-03-20"),
        make_transaction(type=TransactionType.VARIABLE_EXPENSE, category=TransactionCategory.SUPERMARKET_PURCHASES,
                         amount=Decimal("99.50"), date="2025-03-28"),
        make_transaction(type=TransactionType.INVESTMENT, category=TransactionCategory.INVESTMENTS_SAVINGS,
                         amount=Decimal("1000"), date="2025-03-31"),
        make_transaction(type=TransactionType.VARIABLE_EXPENSE, category=TransactionCategory.FUEL,
                         amount=Decimal("300"), date="2025-04-01"),
    ]


class TestPeriodHelpers:
    """Tests for month predicates and month arithmetic."""

    def test_month_predicate(self, make_transaction):
        """Test that the predicate matches year and month from the date string."""
        matches = month_predicate(2025, 3)
        assert matches(make_transaction(date="2025-03-31"))
        assert not matches(make_transaction(date="2025-04-01"))
        assert not matches(make_transaction(date="2024-03-15"))

    @pytest.mark.parametrize("year,month,delta,expected", [
        (2025, 3, -1, (2025, 2)),
        (2025, 1, -1, (2024, 12)),
        (2024, 12, 1, (2025, 1)),
        (2025, 3, -14, (2024, 1)),
        (2025, 3, 0, (2025, 3)),
    ])
    def test_shift_month(self, year, month, delta, expected):
        """Test month shifting across year boundaries."""
        assert shift_month(year, month, delta) == expected


class TestSummarize:
    """Tests for summarize."""

    def test_month_summary(self, march_ledger):
        """Test totals for a single month."""
        summary = summarize(march_ledger, month_predicate(2025, 3))

        assert summary.total_income == Decimal("5000")
        assert summary.total_fixed_expenses == Decimal("1500")
        assert summary.total_variable_expenses == Decimal("900")
        assert summary.total_investments == Decimal("1000")
        assert summary.net_balance == Decimal("1600")

    def test_without_predicate_counts_everything(self, march_ledger):
        """Test that no predicate means the whole log."""
        summary = summarize(march_ledger)
        assert summary.total_variable_expenses == Decimal("1200")

    def test_empty_log(self):
        """Test that an empty log gives zero totals."""
        summary = summarize([])
        assert summary.net_balance == Decimal("0")
        assert summary.total_income == Decimal("0")

    def test_net_balance_identity(self, march_ledger):
        """Test netBalance = income - fixed - variable - investments."""
        for month in (3, 4):
            s = summarize(march_ledger, month_predicate(2025, month))
            assert s.net_balance == (
                s.total_income - s.total_fixed_expenses
                - s.total_variable_expenses - s.total_investments
            )

    def test_negative_balance(self, make_transaction):
        """Test that spending more than earned gives a negative balance."""
        summary = summarize([make_transaction(amount=Decimal("10"))])
        assert summary.net_balance == Decimal("-10")


class TestGroupings:
    """Tests for the chart groupings."""

    def test_group_by_category_order_and_totals(self, march_ledger):
        """Test expense-only grouping in order of first appearance."""
        groups = group_by_category(march_ledger)

        assert [(g.category, g.total) for g in groups] == [
            (TransactionCategory.RENT_HOME_LOAN, Decimal("1500")),
            (TransactionCategory.SUPERMARKET_PURCHASES, Decimal("700")),
            (TransactionCategory.FUEL, Decimal("500")),
        ]

    def test_group_by_category_excludes_income_and_investment(self, march_ledger):
        """Test that income and investment categories never appear."""
        categories = {g.category for g in group_by_category(march_ledger)}
        assert TransactionCategory.INCOME_SOURCE not in categories
        assert TransactionCategory.INVESTMENTS_SAVINGS not in categories

    def test_group_by_category_drops_zero_totals(self, make_transaction):
        """Test that zero-total categories are dropped."""
        groups = group_by_category([
            make_transaction(amount=Decimal("0"), category=TransactionCategory.GIFTS),
            make_transaction(amount=Decimal("5"), category=TransactionCategory.CINEMA),
        ])
        assert [g.category for g in groups] == [TransactionCategory.CINEMA]

    def test_group_by_type(self, march_ledger):
        """Test the fixed/variable split."""
        groups = group_by_type(march_ledger)
        assert [(g.type, g.total) for g in groups] == [
            (TransactionType.FIXED_EXPENSE, Decimal("1500")),
            (TransactionType.VARIABLE_EXPENSE, Decimal("1200")),
        ]
        assert groups[0].label == "Despesa Fixa"

    def test_group_sums_equal_expense_total(self, march_ledger):
        """Test that both groupings add up to the expense total."""
        expense_total = sum(
            (t.amount for t in march_ledger if t.type.is_expense),
            Decimal("0"),
        )
        assert sum((g.total for g in group_by_category(march_ledger)), Decimal("0")) == expense_total
        assert sum((g.total for g in group_by_type(march_ledger)), Decimal("0")) == expense_total

    def test_groupings_of_income_only(self, make_transaction):
        """Test that a log without expenses yields no groups."""
        income = [make_transaction(type=TransactionType.INCOME, category=TransactionCategory.INCOME_SOURCE)]
        assert group_by_category(income) == []
        assert group_by_type(income) == []


class TestMonthlyHistory:
    """Tests for monthly_history."""

    def test_bucket_window(self):
        """Test that buckets end at the reference month, oldest first."""
        buckets = monthly_history([], month_count=6, reference_date=date(2025, 3, 15))
        assert [b.key for b in buckets] == [
            "2024-10", "2024-11", "2024-12", "2025-01", "2025-02", "2025-03",
        ]

    def test_accumulates_by_type(self, march_ledger):
        """Test income, expense and investment accumulation per bucket."""
        buckets = monthly_history(march_ledger, month_count=2, reference_date=date(2025, 4, 2))
        march, april = buckets

        assert march.income == Decimal("5000")
        assert march.expense == Decimal("2400")
        assert march.investment == Decimal("1000")
        assert april.expense == Decimal("300")
        assert april.income == Decimal("0")

    def test_excludes_transactions_outside_window(self, make_transaction):
        """Test that a transaction eight months back is in no bucket."""
        old = make_transaction(date="2024-07-10", amount=Decimal("123"))
        buckets = monthly_history([old], month_count=6, reference_date=date(2025, 3, 1))

        assert len(buckets) == 6
        assert all(b.expense == Decimal("0") for b in buckets)

    def test_excludes_future_transactions(self, make_transaction):
        """Test that months after the reference month are ignored."""
        future = make_transaction(date="2025-04-01")
        buckets = monthly_history([future], month_count=3, reference_date=date(2025, 3, 31))
        assert all(b.expense == Decimal("0") for b in buckets)

    def test_rejects_empty_window(self):
        """Test that at least one month is required."""
        with pytest.raises(ValueError):
            monthly_history([], month_count=0)


class TestFilterByDateRange:
    """Tests for filter_by_date_range."""

    def test_inclusive_bounds(self, march_ledger):
        """Test that both ends of the range are included."""
        result = filter_by_date_range(march_ledger, "2025-03-01", "2025-03-31")
        dates = sorted(t.date for t in result)
        assert dates[0] == "2025-03-01"
        assert dates[-1] == "2025-03-31"
        assert len(result) == 6

    def test_accepts_date_objects(self, march_ledger):
        """Test that date objects are compared as ISO strings."""
        result = filter_by_date_range(march_ledger, date(2025, 4, 1), date(2025, 4, 1))
        assert [t.date for t in result] == ["2025-04-01"]

    def test_idempotent(self, march_ledger):
        """Test that re-filtering with the same range changes nothing."""
        once = filter_by_date_range(march_ledger, "2025-03-10", "2025-03-30")
        twice = filter_by_date_range(once, "2025-03-10", "2025-03-30")
        assert twice == once

    def test_inverted_range_is_empty(self, march_ledger):
        """Test that start after end selects nothing."""
        assert filter_by_date_range(march_ledger, "2025-04-01", "2025-03-01") == []


class TestGoalProgress:
    """Tests for goal_progress."""

    def test_progress(self, make_goal):
        """Test percentage and remaining amount."""
        progress = goal_progress(make_goal(target_amount=Decimal("1000"), current_amount=Decimal("250")))
        assert progress.percentage == pytest.approx(25.0)
        assert progress.remaining == Decimal("750")
        assert not progress.is_completed

    def test_completed(self, make_goal):
        """Test completion when the target is exceeded."""
        progress = goal_progress(make_goal(target_amount=Decimal("100"), current_amount=Decimal("150")))
        assert progress.is_completed
        assert progress.remaining == Decimal("0")
        assert progress.percentage == pytest.approx(150.0)
        assert progress.bar_width == 100.0

    def test_zero_target(self, make_goal):
        """Test that a zero target does not divide by zero."""
        progress = goal_progress(make_goal(target_amount=Decimal("0")))
        assert progress.percentage == 0.0
        assert progress.is_completed
