"""Tests for the entity store and its goal-sync wiring."""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from finance_tracker.ledger.store import (
    GOALS,
    TRANSACTIONS,
    DeletionNotConfirmedError,
    DuplicateEntityError,
    EntityNotFoundError,
    LedgerStore,
    load_store,
)
from finance_tracker.models.ledger import TransactionCategory, TransactionType
from finance_tracker.services.storage import InMemoryKeyValueStore, LedgerRepository
from finance_tracker.services.storage.repository import DEFAULT_TRANSACTIONS_KEY


@pytest.fixture
def store(make_goal):
    return LedgerStore(goals=[make_goal(id="g1", current_amount=Decimal("200"))])


def goal_amount(store, goal_id="g1"):
    return store.get_goal(goal_id).current_amount


class SlowRepository:
    """Repository whose saves wait until released."""

    def __init__(self, release):
        self.release = release
        self.saved_goals = []

    def load_transactions(self):
        return []

    def load_goals(self):
        return []

    def save_transactions(self, transactions):
        return True

    def save_goals(self, goals):
        self.release.wait(timeout=5)
        self.saved_goals.append(goals)
        return True


class TestTransactionMutations:
    """Tests for transaction add/update/delete."""

    def test_add_and_get(self, store, make_transaction):
        """Test that added transactions are listed and retrievable."""
        tx = make_transaction()
        store.add_transaction(tx)
        assert store.list_transactions() == [tx]
        assert store.get_transaction(tx.id) == tx

    def test_add_duplicate_id_rejected(self, store, make_transaction):
        """Test that ids are unique."""
        tx = make_transaction(id="t1")
        store.add_transaction(tx)
        with pytest.raises(DuplicateEntityError):
            store.add_transaction(make_transaction(id="t1"))

    def test_update_keeps_position(self, store, make_transaction):
        """Test replace-by-id keeps the transaction's position."""
        first = make_transaction(id="t1")
        second = make_transaction(id="t2")
        store.add_transaction(first)
        store.add_transaction(second)

        store.update_transaction(first.model_copy(update={"description": "Feira"}))

        assert [t.id for t in store.list_transactions()] == ["t1", "t2"]
        assert store.get_transaction("t1").description == "Feira"

    def test_update_unknown_raises(self, store, make_transaction):
        """Test that updating a missing id fails."""
        with pytest.raises(EntityNotFoundError):
            store.update_transaction(make_transaction(id="nope"))

    def test_save_reports_new_or_replaced(self, store, make_transaction):
        """Test save_transaction's return value."""
        tx = make_transaction(id="t1")
        assert store.save_transaction(tx) is True
        assert store.save_transaction(tx) is False

    def test_delete_requires_confirmation(self, store, make_transaction):
        """Test that unconfirmed deletes are refused and change nothing."""
        tx = make_transaction()
        store.add_transaction(tx)
        with pytest.raises(DeletionNotConfirmedError):
            store.delete_transaction(tx.id)
        assert store.list_transactions() == [tx]

    def test_delete(self, store, make_transaction):
        """Test a confirmed delete."""
        tx = make_transaction()
        store.add_transaction(tx)
        assert store.delete_transaction(tx.id, confirmed=True) == tx
        assert store.list_transactions() == []

    def test_delete_unknown_raises(self, store):
        """Test deleting a missing id."""
        with pytest.raises(EntityNotFoundError):
            store.delete_transaction("nope", confirmed=True)

    def test_listing_is_a_copy(self, store, make_transaction):
        """Test that callers cannot mutate the store through a listing."""
        store.add_transaction(make_transaction())
        store.list_transactions().clear()
        assert len(store.list_transactions()) == 1


class TestGoalSyncThroughStore:
    """Tests that the store keeps goal balances in sync."""

    def test_create_edit_unlink_scenario(self, store, make_transaction):
        """Test 200 -> 500 -> 300 -> 200 through store saves."""
        tx = make_transaction(
            id="t1",
            type=TransactionType.INVESTMENT,
            category=TransactionCategory.INVESTMENTS_SAVINGS,
            amount=Decimal("300"),
            goal_id="g1",
        )
        store.save_transaction(tx)
        assert goal_amount(store) == Decimal("500")

        store.save_transaction(tx.model_copy(update={"amount": Decimal("100")}))
        assert goal_amount(store) == Decimal("300")

        store.save_transaction(tx.model_copy(update={"amount": Decimal("100"), "goal_id": None}))
        assert goal_amount(store) == Decimal("200")

    def test_unlinked_investment_leaves_goals(self, store, make_transaction):
        """Test that an investment without a goal moves nothing."""
        store.save_transaction(make_transaction(type=TransactionType.INVESTMENT, amount=Decimal("50")))
        assert goal_amount(store) == Decimal("200")

    def test_non_investment_never_syncs(self, store, make_transaction):
        """Test that other types do not touch goals."""
        store.save_transaction(make_transaction(type=TransactionType.INCOME, amount=Decimal("50")))
        assert goal_amount(store) == Decimal("200")

    def test_type_change_retracts(self, store, make_transaction):
        """Test that turning a linked investment into an expense retracts it."""
        tx = make_transaction(id="t1", type=TransactionType.INVESTMENT, amount=Decimal("300"), goal_id="g1")
        store.save_transaction(tx)
        store.save_transaction(tx.model_copy(update={
            "type": TransactionType.VARIABLE_EXPENSE,
            "goal_id": None,
        }))
        assert goal_amount(store) == Decimal("200")

    def test_delete_retracts(self, store, make_transaction):
        """Test that deleting a linked investment retracts its contribution."""
        tx = make_transaction(id="t1", type=TransactionType.INVESTMENT, amount=Decimal("300"), goal_id="g1")
        store.save_transaction(tx)
        store.delete_transaction("t1", confirmed=True)
        assert goal_amount(store) == Decimal("200")

    def test_delete_retract_clamps(self, store, make_transaction):
        """Test that a retraction larger than the balance floors at zero."""
        tx = make_transaction(id="t1", type=TransactionType.INVESTMENT, amount=Decimal("300"), goal_id="g1")
        store.save_transaction(tx)
        goal = store.get_goal("g1")
        store.save_goal(goal.model_copy(update={"current_amount": Decimal("100")}))

        store.delete_transaction("t1", confirmed=True)

        assert goal_amount(store) == Decimal("0")

    def test_relink_moves_contribution(self, store, make_goal, make_transaction):
        """Test moving an investment from one goal to another."""
        store.add_goal(make_goal(id="g2"))
        tx = make_transaction(id="t1", type=TransactionType.INVESTMENT, amount=Decimal("300"), goal_id="g1")
        store.save_transaction(tx)
        store.save_transaction(tx.model_copy(update={"goal_id": "g2"}))

        assert goal_amount(store, "g1") == Decimal("200")
        assert goal_amount(store, "g2") == Decimal("300")


class TestGoalMutations:
    """Tests for goal add/update/delete."""

    def test_add_goal_duplicate(self, store, make_goal):
        """Test that goal ids are unique."""
        with pytest.raises(DuplicateEntityError):
            store.add_goal(make_goal(id="g1"))

    def test_update_goal(self, store):
        """Test a direct edit of the goal balance."""
        goal = store.get_goal("g1")
        store.update_goal(goal.model_copy(update={"current_amount": Decimal("999")}))
        assert goal_amount(store) == Decimal("999")

    def test_update_missing_goal(self, store, make_goal):
        """Test updating an unknown goal."""
        with pytest.raises(EntityNotFoundError):
            store.update_goal(make_goal(id="nope"))

    def test_delete_goal_requires_confirmation(self, store):
        """Test that goal deletes must be confirmed."""
        with pytest.raises(DeletionNotConfirmedError):
            store.delete_goal("g1")
        store.delete_goal("g1", confirmed=True)
        assert store.list_goals() == []

    def test_sync_against_deleted_goal_is_noop(self, store, make_transaction):
        """Test that a link to a deleted goal moves nothing."""
        tx = make_transaction(id="t1", type=TransactionType.INVESTMENT, amount=Decimal("10"), goal_id="g1")
        store.save_transaction(tx)
        store.delete_goal("g1", confirmed=True)
        store.delete_transaction("t1", confirmed=True)
        assert store.list_goals() == []


class TestSubscribers:
    """Tests for change notification."""

    def test_notified_per_mutation(self, store, make_transaction):
        """Test that each mutated collection is announced."""
        events = []
        store.subscribe(lambda collection, _store: events.append(collection))

        store.save_transaction(make_transaction(type=TransactionType.INVESTMENT, goal_id="g1"))
        store.save_transaction(make_transaction())

        assert events == [TRANSACTIONS, GOALS, TRANSACTIONS]

    def test_unsubscribe(self, store, make_transaction):
        """Test that an unsubscribed callback is no longer called."""
        events = []
        unsubscribe = store.subscribe(lambda collection, _store: events.append(collection))
        unsubscribe()
        store.save_transaction(make_transaction())
        assert events == []

    def test_failing_subscriber_does_not_block(self, store, make_transaction):
        """Test that a broken subscriber neither raises nor undoes the mutation."""
        def broken(collection, _store):
            raise RuntimeError("boom")

        seen = []
        store.subscribe(broken)
        store.subscribe(lambda collection, _store: seen.append(collection))

        store.save_transaction(make_transaction())

        assert len(store.list_transactions()) == 1
        assert seen == [TRANSACTIONS]


class TestLoadStore:
    """Tests for load_store persistence wiring."""

    def test_mutations_are_persisted(self, make_goal, make_transaction):
        """Test that every mutation is saved and reloads identically."""
        repository = LedgerRepository(InMemoryKeyValueStore())
        store = load_store(repository)

        store.add_goal(make_goal(id="g1", current_amount=Decimal("200")))
        store.save_transaction(make_transaction(
            id="t1", type=TransactionType.INVESTMENT, amount=Decimal("300"), goal_id="g1",
        ))

        reloaded = load_store(repository)
        assert reloaded.list_transactions() == store.list_transactions()
        assert reloaded.get_goal("g1").current_amount == Decimal("500")

    def test_out_of_range_record_does_not_block_startup(self, make_transaction):
        """Test that a stored amount no record can hold is skipped at load."""
        good = make_transaction(id="t1").to_storage_dict()
        huge = dict(good, id="t2", amount=1e30)
        repository = LedgerRepository(InMemoryKeyValueStore({
            DEFAULT_TRANSACTIONS_KEY: json.dumps([good, huge]),
        }))

        store = load_store(repository)

        assert [t.id for t in store.list_transactions()] == ["t1"]

    def test_executor_saves_without_blocking_the_mutation(self, make_goal):
        """Test that a handed-off save does not hold up the mutation."""
        release = threading.Event()
        repository = SlowRepository(release)

        with ThreadPoolExecutor(max_workers=1) as executor:
            store = load_store(repository, executor=executor)
            store.add_goal(make_goal(id="g1"))
            assert repository.saved_goals == []

            store.add_goal(make_goal(id="g2"))
            release.set()

        assert [[g.id for g in goals] for goals in repository.saved_goals] == [
            ["g1"],
            ["g1", "g2"],
        ]
