"""
Entity Store

Holds the two in-memory collections (transactions and goals) and owns
every mutation on them.

DESIGN DECISION: Persistence is a subscriber, not a dependency. Each
mutation notifies subscribers with the name of the collection that
changed; `persist_on_change` turns a LedgerRepository into such a
subscriber. The store itself never does I/O.

CRITICAL: Goal balances are only moved here, through the goal-sync
engine, so the linked-investment invariant holds after every call:
- saving an investment retracts its previous contribution (if any) and
  applies the new one
- saving a formerly linked investment as another type retracts it
- deleting a linked investment retracts it
"""

from concurrent.futures import Executor
from decimal import Decimal
from typing import Callable, Optional

import structlog

from finance_tracker.ledger.goal_sync import apply_investment_sync, retract_contribution
from finance_tracker.models.ledger import Goal, Transaction, TransactionType


logger = structlog.get_logger(__name__)

TRANSACTIONS = "transactions"
GOALS = "goals"

Subscriber = Callable[[str, "LedgerStore"], None]


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(Exception):
    """Base exception for entity store operations."""
    pass


class EntityNotFoundError(LedgerError):
    """No entity with the given id."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class DuplicateEntityError(LedgerError):
    """An entity with the same id already exists."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} already exists: {entity_id}")


class DeletionNotConfirmedError(LedgerError):
    """Deletes are irreversible and must be explicitly confirmed."""
    pass


# =============================================================================
# STORE
# =============================================================================

class LedgerStore:
    """
    In-memory transactions and goals with replace-by-id semantics.

    New entities are appended; an update keeps the entity's position.
    Listing returns copies of the collections, so callers cannot
    mutate the store behind its back.
    """

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        goals: Optional[list[Goal]] = None,
    ):
        self._transactions: list[Transaction] = list(transactions or [])
        self._goals: list[Goal] = list(goals or [])
        self._subscribers: list[Subscriber] = []

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a function that unregisters it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _notify(self, collection: str) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(collection, self)
            except Exception as e:
                # A failing subscriber must not undo or block the mutation
                logger.error(
                    "store_subscriber_failed",
                    collection=collection,
                    error=str(e),
                )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def list_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def _transaction_index(self, transaction_id: str) -> int:
        for idx, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return idx
        return -1

    def add_transaction(self, transaction: Transaction) -> Transaction:
        """Append a new transaction, syncing its goal if it is a linked investment."""
        if self._transaction_index(transaction.id) >= 0:
            raise DuplicateEntityError("Transaction", transaction.id)
        self.save_transaction(transaction)
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        """Replace an existing transaction by id."""
        if self._transaction_index(transaction.id) < 0:
            raise EntityNotFoundError("Transaction", transaction.id)
        self.save_transaction(transaction)
        return transaction

    def save_transaction(self, transaction: Transaction) -> bool:
        """
        Insert or replace a transaction and keep goal balances in sync.

        Returns:
            True if the transaction was new, False if it replaced one
        """
        idx = self._transaction_index(transaction.id)
        previous = self._transactions[idx] if idx >= 0 else None

        if previous is None:
            self._transactions.append(transaction)
        else:
            self._transactions[idx] = transaction
        self._notify(TRANSACTIONS)

        goals = self._synced_goals(transaction, previous)
        if goals is not None:
            self._goals = goals
            self._notify(GOALS)

        logger.debug(
            "transaction_stored",
            transaction_id=transaction.id,
            is_new=previous is None,
        )
        return previous is None

    def _synced_goals(
        self,
        transaction: Transaction,
        previous: Optional[Transaction],
    ) -> Optional[list[Goal]]:
        """Goal collection after saving `transaction`, or None if unaffected."""
        previous_goal_id: Optional[str] = None
        previous_amount: Optional[Decimal] = None
        if previous is not None and previous.is_linked_investment:
            previous_goal_id = previous.goal_id
            previous_amount = previous.amount

        if transaction.type == TransactionType.INVESTMENT:
            if not transaction.goal_id and previous_goal_id is None:
                return None
            return apply_investment_sync(
                self._goals,
                transaction,
                new_linked_goal_id=transaction.goal_id,
                previous_amount=previous_amount,
                previous_linked_goal_id=previous_goal_id,
            )

        if previous_goal_id is not None:
            return retract_contribution(self._goals, previous_goal_id, previous_amount)
        return None

    def delete_transaction(self, transaction_id: str, confirmed: bool = False) -> Transaction:
        """
        Remove a transaction by id.

        A linked investment's contribution is retracted from its goal.

        Raises:
            DeletionNotConfirmedError: If `confirmed` is False
            EntityNotFoundError: If no transaction has this id
        """
        if not confirmed:
            raise DeletionNotConfirmedError(
                f"Deleting transaction {transaction_id} requires confirmation"
            )
        idx = self._transaction_index(transaction_id)
        if idx < 0:
            raise EntityNotFoundError("Transaction", transaction_id)

        removed = self._transactions.pop(idx)
        self._notify(TRANSACTIONS)

        if removed.is_linked_investment:
            self._goals = retract_contribution(self._goals, removed.goal_id, removed.amount)
            self._notify(GOALS)

        return removed

    def replace_transactions(self, transactions: list[Transaction]) -> None:
        """Swap the whole collection (backup import). Goals are left as they are."""
        self._transactions = list(transactions)
        self._notify(TRANSACTIONS)

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    def list_goals(self) -> list[Goal]:
        return list(self._goals)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        for goal in self._goals:
            if goal.id == goal_id:
                return goal
        return None

    def _goal_index(self, goal_id: str) -> int:
        for idx, goal in enumerate(self._goals):
            if goal.id == goal_id:
                return idx
        return -1

    def add_goal(self, goal: Goal) -> Goal:
        if self._goal_index(goal.id) >= 0:
            raise DuplicateEntityError("Goal", goal.id)
        self.save_goal(goal)
        return goal

    def update_goal(self, goal: Goal) -> Goal:
        if self._goal_index(goal.id) < 0:
            raise EntityNotFoundError("Goal", goal.id)
        self.save_goal(goal)
        return goal

    def save_goal(self, goal: Goal) -> bool:
        """Insert or replace a goal. Returns True if it was new."""
        idx = self._goal_index(goal.id)
        if idx < 0:
            self._goals.append(goal)
        else:
            self._goals[idx] = goal
        self._notify(GOALS)
        return idx < 0

    def delete_goal(self, goal_id: str, confirmed: bool = False) -> Goal:
        """
        Remove a goal by id.

        Transactions linked to it keep their goal id; syncing against a
        goal that no longer exists is a no-op.
        """
        if not confirmed:
            raise DeletionNotConfirmedError(
                f"Deleting goal {goal_id} requires confirmation"
            )
        idx = self._goal_index(goal_id)
        if idx < 0:
            raise EntityNotFoundError("Goal", goal_id)

        removed = self._goals.pop(idx)
        self._notify(GOALS)
        return removed

    def replace_goals(self, goals: list[Goal]) -> None:
        self._goals = list(goals)
        self._notify(GOALS)


# =============================================================================
# PERSISTENCE WIRING
# =============================================================================

def persist_on_change(repository, executor: Optional[Executor] = None) -> Subscriber:
    """
    Subscriber that saves the changed collection through a LedgerRepository.

    Saves are best-effort: the repository logs failures and returns False.
    With an executor the save is submitted and the mutation returns without
    waiting for it. The collection is snapshotted at notification time, and
    a single-worker executor keeps saves in mutation order.
    """
    def save(collection: str, store: LedgerStore) -> None:
        if collection == TRANSACTIONS:
            task, items = repository.save_transactions, store.list_transactions()
        elif collection == GOALS:
            task, items = repository.save_goals, store.list_goals()
        else:
            return

        if executor is None:
            task(items)
        else:
            executor.submit(task, items)

    return save


def load_store(repository, executor: Optional[Executor] = None) -> LedgerStore:
    """Build a store from persisted collections and keep it persisted."""
    store = LedgerStore(
        transactions=repository.load_transactions(),
        goals=repository.load_goals(),
    )
    store.subscribe(persist_on_change(repository, executor))
    logger.info(
        "ledger_loaded",
        transaction_count=len(store.list_transactions()),
        goal_count=len(store.list_goals()),
    )
    return store
