"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against an in-memory SQLite database (TestingConfig), or the
    database named by TEST_DATABASE_URL when it is set.
  - The app is created once per session using create_app("testing").
  - The ledger_records table is created once via db.create_all() at session start.
  - Between tests, the ledger row is deleted and the cached LedgerEngine is
    discarded, so every test starts from the default roster with no history.

Helper functions (not fixtures) are provided for common operations:
  - get_view(client)              → current view dict
  - set_bill(client, amount)      → HTTP response
  - pay(client, amount, people)   → HTTP response
  - add_person(client, name)      → HTTP response
  - remove_person(client, name)   → HTTP response
  - amounts(view)                 → {name: Decimal} from the allocations list

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from decimal import Decimal
from urllib.parse import quote

import pytest
from sqlalchemy import delete

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.app.extensions import ledger as _ledger
from backend.app.models.ledger_record import LedgerRecord

API = "/api/v1/ledger"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_ledger(app):
    """
    Removes the persisted ledger and the cached engine after every test.

    Discarding the engine matters as much as deleting the row: the engine
    keeps its state and undo history in memory for the life of the app.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        _db.session.execute(delete(LedgerRecord))
        _db.session.commit()
        _ledger.discard_engine()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def get_view(client) -> dict:
    resp = client.get(f"{API}/")
    assert resp.status_code == 200, f"get_view failed: {resp.get_json()}"
    return resp.get_json()["data"]


def set_bill(client, amount):
    return client.post(f"{API}/bill", json={"amount": amount})


def pay(client, amount, people: list[str]):
    return client.post(f"{API}/payments", json={"amount": amount, "people": people})


def add_person(client, name: str):
    return client.post(f"{API}/people", json={"name": name})


def remove_person(client, name: str, confirm: bool = True):
    flag = "true" if confirm else "false"
    return client.delete(f"{API}/people/{quote(name)}?confirm={flag}")


def use_roster(client, names: list[str]) -> dict:
    """
    Replaces the default roster with `names` and returns the resulting view.
    Only valid before any payment is made.
    """
    for name in get_view(client)["participants"]:
        assert remove_person(client, name).status_code == 200
    for name in names:
        assert add_person(client, name).status_code == 201
    return get_view(client)


def amounts(view: dict) -> dict[str, Decimal]:
    """Allocations list from the view as {name: Decimal}."""
    return {row["name"]: Decimal(str(row["amount"])) for row in view["allocations"]}
