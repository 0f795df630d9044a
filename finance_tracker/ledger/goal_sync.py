"""
Goal-Sync Engine

Keeps goal balances consistent with the investments linked to them.

INVARIANT: every Investment transaction with a goal link is counted
exactly once in that goal's `current_amount`. When an edit changes or
removes the link, the old contribution is retracted before the new one
is applied.

The engine patches balances incrementally (retract old, add new, floor
at zero). Because of the floor, retracting more than a goal holds loses
the difference instead of going negative. `recompute_goal_amounts`
rebuilds balances from the transaction log and can be used to check a
patched collection against the source of truth.

All functions are pure: they return new Goal objects and never touch
the transaction collection.
"""

from decimal import Decimal
from typing import Iterable, Optional

from finance_tracker.models.ledger import Goal, Transaction, TransactionType


ZERO = Decimal("0")


def _adjust_goals(
    goals: list[Goal],
    retract_goal_id: Optional[str],
    retract_amount: Optional[Decimal],
    add_goal_id: Optional[str],
    add_amount: Decimal,
) -> list[Goal]:
    """Single pass over the goals applying a retraction and a contribution."""
    updated = []
    for goal in goals:
        new_amount = goal.current_amount
        changed = False

        if retract_goal_id and goal.id == retract_goal_id and retract_amount is not None:
            new_amount -= retract_amount
            changed = True

        if add_goal_id and goal.id == add_goal_id:
            new_amount += add_amount
            changed = True

        if new_amount < ZERO:
            new_amount = ZERO

        updated.append(
            goal.model_copy(update={"current_amount": new_amount}) if changed else goal
        )
    return updated


def apply_investment_sync(
    goals: list[Goal],
    new_transaction: Transaction,
    new_linked_goal_id: Optional[str] = None,
    previous_amount: Optional[Decimal] = None,
    previous_linked_goal_id: Optional[str] = None,
) -> list[Goal]:
    """
    Apply an investment create or edit to the goal balances.

    Args:
        goals: Current goal collection
        new_transaction: The transaction as saved; must be an Investment
        new_linked_goal_id: Goal that receives `new_transaction.amount`
        previous_amount: Amount before the edit (edits only)
        previous_linked_goal_id: Goal linked before the edit (edits only)

    Returns:
        The updated goal collection, same order. A goal matching both
        ids receives `new_amount - previous_amount`. Balances are
        floored at zero.

    Raises:
        ValueError: If the transaction is not an Investment
    """
    if new_transaction.type != TransactionType.INVESTMENT:
        raise ValueError(
            f"Goal sync only applies to investments, got {new_transaction.type.value}"
        )

    return _adjust_goals(
        goals,
        retract_goal_id=previous_linked_goal_id,
        retract_amount=previous_amount,
        add_goal_id=new_linked_goal_id,
        add_amount=new_transaction.amount,
    )


def retract_contribution(
    goals: list[Goal],
    goal_id: Optional[str],
    amount: Decimal,
) -> list[Goal]:
    """
    Remove a contribution from a goal, floored at zero.

    Used when a linked investment is deleted or stops being an
    investment.
    """
    return _adjust_goals(
        goals,
        retract_goal_id=goal_id,
        retract_amount=amount,
        add_goal_id=None,
        add_amount=ZERO,
    )


def linked_contributions(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Sum of linked investment amounts per goal id."""
    totals: dict[str, Decimal] = {}
    for transaction in transactions:
        if transaction.is_linked_investment:
            totals[transaction.goal_id] = totals.get(transaction.goal_id, ZERO) + transaction.amount
    return totals


def recompute_goal_amounts(
    goals: list[Goal],
    transactions: Iterable[Transaction],
    base_amounts: Optional[dict[str, Decimal]] = None,
) -> list[Goal]:
    """
    Rebuild every balance as `base + sum(linked investments)`.

    Args:
        goals: Goals to rebuild
        transactions: The full transaction log
        base_amounts: Amount each goal held independently of linked
            investments (e.g. the value typed into the goal form).
            Missing goals default to zero.
    """
    contributions = linked_contributions(transactions)
    base_amounts = base_amounts or {}
    return [
        goal.model_copy(update={
            "current_amount": max(
                ZERO,
                base_amounts.get(goal.id, ZERO) + contributions.get(goal.id, ZERO),
            ),
        })
        for goal in goals
    ]
