"""
Aggregation Engine

Pure, stateless derivations over a list of transactions. Nothing here
mutates its input, performs I/O, or caches: dashboards call these on
every render and get values that reflect the current log.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional, Union

from finance_tracker.models.ledger import (
    CategoryTotal,
    Goal,
    GoalProgress,
    MonthlyBucket,
    Summary,
    Transaction,
    TransactionCategory,
    TransactionType,
    TypeTotal,
)


ZERO = Decimal("0")

PeriodPredicate = Callable[[Transaction], bool]
DateLike = Union[str, date]


def _as_iso(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else value


# =============================================================================
# PERIOD HELPERS
# =============================================================================

def month_predicate(year: int, month: int) -> PeriodPredicate:
    """Predicate selecting transactions dated in the given month (1-12)."""
    def matches(transaction: Transaction) -> bool:
        return transaction.year == year and transaction.month == month
    return matches


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move a (year, month) pair by `delta` months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def filter_by_date_range(
    transactions: Iterable[Transaction],
    start_date: DateLike,
    end_date: DateLike,
) -> list[Transaction]:
    """
    Transactions dated between start and end, both inclusive.

    Dates are compared as ISO strings, which orders them exactly like
    calendar dates without any time zone involved.
    """
    start = _as_iso(start_date)
    end = _as_iso(end_date)
    return [t for t in transactions if start <= t.date <= end]


def expense_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Fixed and variable expenses only (no income, no investments)."""
    return [t for t in transactions if t.type.is_expense]


# =============================================================================
# SUMMARY
# =============================================================================

_SUMMARY_FIELDS = {
    TransactionType.INCOME: "total_income",
    TransactionType.FIXED_EXPENSE: "total_fixed_expenses",
    TransactionType.VARIABLE_EXPENSE: "total_variable_expenses",
    TransactionType.INVESTMENT: "total_investments",
}


def summarize(
    transactions: Iterable[Transaction],
    period_predicate: Optional[PeriodPredicate] = None,
) -> Summary:
    """
    Totals per transaction type for the transactions in a period.

    netBalance = income - fixed - variable - investments.
    Without a predicate every transaction is counted.
    """
    totals = {field: ZERO for field in _SUMMARY_FIELDS.values()}

    for transaction in transactions:
        if period_predicate is not None and not period_predicate(transaction):
            continue
        totals[_SUMMARY_FIELDS[transaction.type]] += transaction.amount

    net_balance = (
        totals["total_income"]
        - totals["total_fixed_expenses"]
        - totals["total_variable_expenses"]
        - totals["total_investments"]
    )
    return Summary(net_balance=net_balance, **totals)


# =============================================================================
# CHART GROUPINGS
# =============================================================================

def group_by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    """
    Expense totals per category.

    Categories appear in order of first appearance; zero totals are dropped.
    """
    totals: dict[TransactionCategory, Decimal] = {}
    for transaction in expense_transactions(transactions):
        totals[transaction.category] = totals.get(transaction.category, ZERO) + transaction.amount

    return [
        CategoryTotal(category=category, total=total)
        for category, total in totals.items()
        if total > ZERO
    ]


def group_by_type(transactions: Iterable[Transaction]) -> list[TypeTotal]:
    """Expense totals split into fixed and variable, zero totals dropped."""
    totals: dict[TransactionType, Decimal] = {}
    for transaction in expense_transactions(transactions):
        totals[transaction.type] = totals.get(transaction.type, ZERO) + transaction.amount

    return [
        TypeTotal(type=transaction_type, total=total)
        for transaction_type, total in totals.items()
        if total > ZERO
    ]


def monthly_history(
    transactions: Iterable[Transaction],
    month_count: int = 6,
    reference_date: Optional[date] = None,
) -> list[MonthlyBucket]:
    """
    Income, expense and investment totals for the last `month_count` months.

    The window ends with the month of `reference_date` (default: today),
    oldest bucket first. Transactions outside the window are ignored.
    """
    if month_count < 1:
        raise ValueError("month_count must be at least 1")

    reference_date = reference_date or date.today()
    buckets: dict[tuple[int, int], MonthlyBucket] = {}
    for offset in range(month_count - 1, -1, -1):
        year, month = shift_month(reference_date.year, reference_date.month, -offset)
        buckets[(year, month)] = MonthlyBucket(year=year, month=month)

    for transaction in transactions:
        bucket = buckets.get((transaction.year, transaction.month))
        if bucket is None:
            continue
        if transaction.type == TransactionType.INCOME:
            bucket.income += transaction.amount
        elif transaction.type == TransactionType.INVESTMENT:
            bucket.investment += transaction.amount
        else:
            bucket.expense += transaction.amount

    return list(buckets.values())


# =============================================================================
# GOALS
# =============================================================================

def goal_progress(goal: Goal) -> GoalProgress:
    """Percentage reached, completion flag and remaining amount for a goal."""
    if goal.target_amount > ZERO:
        percentage = float(goal.current_amount / goal.target_amount * 100)
    else:
        percentage = 0.0

    return GoalProgress(
        goal_id=goal.id,
        name=goal.name,
        current_amount=goal.current_amount,
        target_amount=goal.target_amount,
        percentage=max(0.0, percentage),
        is_completed=goal.current_amount >= goal.target_amount,
        remaining=max(ZERO, goal.target_amount - goal.current_amount),
    )
