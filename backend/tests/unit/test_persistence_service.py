"""
tests/unit/test_persistence_service.py — Unit tests for services/persistence_service.py.

What this file proves:
  - load_state() accepts blobs in the persisted JSON shape, including old ones
    with missing or null optional keys
  - Malformed blobs (roster not a list, bill not a number) fall back to a fresh ledger
  - Every participant is backfilled with a zero allocation on load
  - InMemoryLedgerStore never aliases the caller's dicts
  - SqlAlchemyLedgerStore maps storage failures to PersistenceError and rolls back

Unit test constraints:
  - No database. SqlAlchemyLedgerStore is exercised with a MagicMock session;
    the real-table path is covered in tests/integration/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from backend.app.errors import PersistenceError
from backend.app.models.ledger_state import Transaction
from backend.app.services.persistence_service import (
    InMemoryLedgerStore,
    SqlAlchemyLedgerStore,
    default_state,
    load_state,
)

NOW = datetime(2026, 5, 4, 9, 30, tzinfo=timezone.utc)


def _clock():
    return NOW


def _blob(**overrides) -> dict:
    blob = {
        "billAmount": 100,
        "remainingAmount": 60,
        "people": ["A", "B"],
        "payments": {"A": 20, "B": 20},
        "transactions": [{"amount": "€40.00", "people": "A, B"}],
        "createdAt": "2026-01-02T03:04:05.000Z",
    }
    blob.update(overrides)
    return blob


# ═══════════════════════════════════════════════════════════════════════════
# default_state
# ═══════════════════════════════════════════════════════════════════════════

def test_default_state_has_zero_allocations_and_timestamp():
    state = default_state(["X", "Y"], _clock)

    assert state.participants == ["X", "Y"]
    assert state.allocations == {"X": Decimal("0"), "Y": Decimal("0")}
    assert state.bill_amount == Decimal("0")
    assert state.created_at == NOW.isoformat()


# ═══════════════════════════════════════════════════════════════════════════
# load_state
# ═══════════════════════════════════════════════════════════════════════════

class TestLoadState:

    def test_valid_blob_is_restored(self):
        state, restored = load_state(InMemoryLedgerStore(_blob()), ["Z"], _clock)

        assert restored is True
        assert state.bill_amount == Decimal("100")
        assert state.remaining_amount == Decimal("60")
        assert state.participants == ["A", "B"]
        assert state.allocations == {"A": Decimal("20"), "B": Decimal("20")}
        assert state.transactions == [Transaction(Decimal("40.00"), ("A", "B"))]
        assert state.created_at == "2026-01-02T03:04:05.000Z"

    def test_missing_blob_gives_defaults(self):
        state, restored = load_state(InMemoryLedgerStore(), ["Z"], _clock)

        assert restored is False
        assert state.participants == ["Z"]

    @pytest.mark.parametrize("bad", [
        _blob(people="A, B"),
        _blob(people=None),
        _blob(people=["A", 3]),
        _blob(billAmount="100"),
        _blob(billAmount=None),
        _blob(billAmount=True),
        {"people": ["A"]},
        ["not", "a", "dict"],
    ])
    def test_malformed_blob_gives_defaults(self, bad, caplog):
        state, restored = load_state(InMemoryLedgerStore(bad), ["Z"], _clock)

        assert restored is False
        assert state.participants == ["Z"]
        assert "malformed persisted ledger" in caplog.text

    def test_unreadable_store_gives_defaults(self, caplog):
        store = MagicMock()
        store.load.side_effect = PersistenceError("k", "boom")

        state, restored = load_state(store, ["Z"], _clock)

        assert restored is False
        assert state.participants == ["Z"]
        assert "boom" in caplog.text

    def test_optional_keys_may_be_missing_or_null(self):
        blob = {"billAmount": 0, "people": ["A"], "payments": None, "transactions": None}

        state, restored = load_state(InMemoryLedgerStore(blob), [], _clock)

        assert restored is True
        assert state.remaining_amount == Decimal("0")
        assert state.transactions == []
        assert state.created_at == NOW.isoformat()

    def test_allocations_are_backfilled_for_every_participant(self):
        blob = _blob(people=["A", "B", "C"], payments={"A": 20})

        state, _ = load_state(InMemoryLedgerStore(blob), [], _clock)

        assert state.allocations == {
            "A": Decimal("20"), "B": Decimal("0"), "C": Decimal("0"),
        }

    def test_unparseable_transaction_amount_reads_as_zero(self):
        blob = _blob(transactions=[{"amount": "€oops", "people": "A"}, {"people": ""}])

        state, _ = load_state(InMemoryLedgerStore(blob), [], _clock)

        assert state.transactions == [
            Transaction(Decimal("0"), ("A",)),
            Transaction(Decimal("0"), ()),
        ]

    def test_unknown_keys_are_ignored(self):
        state, restored = load_state(InMemoryLedgerStore(_blob(theme="dark")), [], _clock)
        assert restored is True

    def test_round_trip_through_to_dict(self):
        state, _ = load_state(InMemoryLedgerStore(_blob()), [], _clock)

        again, _ = load_state(InMemoryLedgerStore(state.to_dict()), [], _clock)

        assert again == state


# ═══════════════════════════════════════════════════════════════════════════
# InMemoryLedgerStore
# ═══════════════════════════════════════════════════════════════════════════

def test_in_memory_store_copies_on_save_and_load():
    blob = _blob()
    store = InMemoryLedgerStore()

    store.save(blob)
    blob["people"].append("C")
    loaded = store.load()
    loaded["people"].append("D")

    assert store.load()["people"] == ["A", "B"]


def test_in_memory_store_clear():
    store = InMemoryLedgerStore(_blob())
    store.clear()
    assert store.load() is None


# ═══════════════════════════════════════════════════════════════════════════
# SqlAlchemyLedgerStore (mocked session)
# ═══════════════════════════════════════════════════════════════════════════

def _db_error() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


class TestSqlAlchemyLedgerStore:

    def test_load_returns_none_when_row_missing(self):
        session = MagicMock()
        session.get.return_value = None

        assert SqlAlchemyLedgerStore(session, "k").load() is None

    def test_load_decodes_payload(self):
        session = MagicMock()
        session.get.return_value = SimpleNamespace(payload=json.dumps(_blob()))

        assert SqlAlchemyLedgerStore(session, "k").load() == _blob()

    def test_load_bad_json_raises_persistence_error(self):
        session = MagicMock()
        session.get.return_value = SimpleNamespace(payload="{not json")

        with pytest.raises(PersistenceError) as exc_info:
            SqlAlchemyLedgerStore(session, "k").load()

        assert exc_info.value.key == "k"
        session.rollback.assert_called_once()

    def test_save_inserts_new_row_and_commits(self):
        session = MagicMock()
        session.get.return_value = None

        SqlAlchemyLedgerStore(session, "k").save(_blob())

        record = session.add.call_args.args[0]
        assert record.key == "k"
        assert json.loads(record.payload) == _blob()
        session.commit.assert_called_once()

    def test_save_updates_existing_row(self):
        session = MagicMock()
        existing = SimpleNamespace(payload="{}")
        session.get.return_value = existing

        SqlAlchemyLedgerStore(session, "k").save({"billAmount": 5})

        assert json.loads(existing.payload) == {"billAmount": 5}
        session.add.assert_not_called()
        session.commit.assert_called_once()

    def test_save_db_error_rolls_back(self):
        session = MagicMock()
        session.get.return_value = None
        session.commit.side_effect = _db_error()

        with pytest.raises(PersistenceError):
            SqlAlchemyLedgerStore(session, "k").save(_blob())

        session.rollback.assert_called_once()

    def test_clear_deletes_row(self):
        session = MagicMock()
        record = SimpleNamespace(payload="{}")
        session.get.return_value = record

        SqlAlchemyLedgerStore(session, "k").clear()

        session.delete.assert_called_once_with(record)
        session.commit.assert_called_once()

    def test_clear_db_error_raises_persistence_error(self):
        session = MagicMock()
        session.get.side_effect = _db_error()

        with pytest.raises(PersistenceError):
            SqlAlchemyLedgerStore(session, "k").clear()
