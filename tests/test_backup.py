"""Tests for backup export and import."""

import json
from datetime import datetime
from decimal import Decimal

import pytest

from finance_tracker.ledger.backup import (
    BackupImportError,
    backup_filename,
    dumps_backup,
    export_backup,
    import_backup,
    parse_backup,
)
from finance_tracker.ledger.store import LedgerStore
from finance_tracker.models.ledger import TransactionType


@pytest.fixture
def populated_store(make_transaction, make_goal):
    return LedgerStore(
        transactions=[
            make_transaction(id="t1"),
            make_transaction(id="t2", type=TransactionType.INVESTMENT, goal_id="g1", amount=Decimal("300")),
        ],
        goals=[make_goal(id="g1", current_amount=Decimal("500"))],
    )


class TestExport:
    """Tests for backup export."""

    def test_document_shape(self, populated_store):
        """Test the exported keys and camelCase records."""
        document = export_backup(
            populated_store.list_transactions(),
            populated_store.list_goals(),
            exported_at=datetime(2025, 3, 10, 12, 0, 0),
        )

        assert set(document) == {"transactions", "goals", "exportedAt", "version"}
        assert document["version"] == 1
        assert document["exportedAt"].startswith("2025-03-10T12:00:00")
        assert document["transactions"][1]["goalId"] == "g1"
        assert document["goals"][0]["currentAmount"] == 500.0

    def test_dumps_is_readable_json(self, populated_store):
        """Test that the download text keeps accents and parses back."""
        text = dumps_backup(export_backup([], populated_store.list_goals()))
        assert "Reserva de emergência" in text
        assert json.loads(text)["transactions"] == []

    def test_filename(self):
        """Test the dated backup filename."""
        assert backup_filename(datetime(2025, 3, 10)) == "backup_financeiro_2025-03-10.json"


class TestImport:
    """Tests for backup import."""

    def test_round_trip_restores_both_collections(self, populated_store):
        """Test that importing an export reproduces the store contents."""
        text = dumps_backup(export_backup(
            populated_store.list_transactions(),
            populated_store.list_goals(),
        ))
        target = LedgerStore()

        replaced = import_backup(target, text)

        assert replaced == ["transactions", "goals"]
        assert target.list_transactions() == populated_store.list_transactions()
        assert target.list_goals() == populated_store.list_goals()

    def test_import_does_not_resync_goals(self, populated_store):
        """Test that goal balances are taken as stored, not re-applied."""
        text = dumps_backup(export_backup(
            populated_store.list_transactions(),
            populated_store.list_goals(),
        ))
        target = LedgerStore()
        import_backup(target, text)
        assert target.get_goal("g1").current_amount == Decimal("500")

    def test_partial_document_replaces_only_present_key(self, populated_store, make_goal):
        """Test that a goals-only backup leaves transactions alone."""
        new_goal = make_goal(id="g9", name="Carro")
        replaced = import_backup(populated_store, {"goals": [new_goal.to_storage_dict()]})

        assert replaced == ["goals"]
        assert [g.id for g in populated_store.list_goals()] == ["g9"]
        assert len(populated_store.list_transactions()) == 2

    def test_out_of_range_amount_is_readable_error(self, populated_store, make_transaction):
        """Test that an oversized amount is reported like any invalid record."""
        record = dict(make_transaction(id="t9").to_storage_dict(), amount=1e30)

        with pytest.raises(BackupImportError) as exc_info:
            import_backup(populated_store, json.dumps({"transactions": [record]}))

        assert "transactions" in str(exc_info.value)
        assert [t.id for t in populated_store.list_transactions()] == ["t1", "t2"]

    def test_non_list_key_is_ignored(self, populated_store):
        """Test that a present but non-list key does not replace anything."""
        replaced = import_backup(populated_store, {"transactions": [], "goals": "nope"})
        assert replaced == ["transactions"]
        assert populated_store.list_transactions() == []
        assert len(populated_store.list_goals()) == 1

    def test_empty_lists_clear_collections(self, populated_store):
        """Test that empty lists are a valid replacement."""
        import_backup(populated_store, '{"transactions": [], "goals": []}')
        assert populated_store.list_transactions() == []
        assert populated_store.list_goals() == []

    def test_invalid_json_leaves_state(self, populated_store):
        """Test that garbage input raises and changes nothing."""
        before = populated_store.list_transactions()
        with pytest.raises(BackupImportError):
            import_backup(populated_store, "{not json")
        assert populated_store.list_transactions() == before

    def test_non_object_rejected(self):
        """Test that a top-level array is not a backup."""
        with pytest.raises(BackupImportError):
            parse_backup("[]")

    def test_no_collections_rejected(self):
        """Test that a document without either list is rejected."""
        with pytest.raises(BackupImportError):
            parse_backup({"version": 1})

    def test_invalid_record_is_all_or_nothing(self, populated_store, make_goal):
        """Test that one bad record aborts the whole import."""
        raw = {
            "goals": [make_goal(id="g9").to_storage_dict()],
            "transactions": [{"id": "x", "amount": 1, "date": "2025-01-01", "type": "DONATION"}],
        }

        with pytest.raises(BackupImportError) as exc_info:
            import_backup(populated_store, raw)

        assert "transactions" in str(exc_info.value)
        assert [g.id for g in populated_store.list_goals()] == ["g1"]
        assert len(populated_store.list_transactions()) == 2

    def test_bytes_input(self):
        """Test that uploaded bytes are accepted."""
        document = parse_backup('{"goals": []}'.encode("utf-8"))
        assert document.goals == []
        assert document.transactions is None

    def test_import_notifies_subscribers(self, populated_store):
        """Test that an import goes through the store's notifications."""
        events = []
        populated_store.subscribe(lambda collection, _store: events.append(collection))
        import_backup(populated_store, {"transactions": [], "goals": []})
        assert events == ["transactions", "goals"]
