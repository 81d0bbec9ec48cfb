"""
services/persistence_service.py — Ledger storage transports and state loading.

A store is a dumb key/value transport for one JSON-serialisable blob. It
knows nothing about ledger rules. load_state() is the only place a blob
becomes a live LedgerState, and it validates the blob first.

Failure policy:
  - Stores raise PersistenceError for any storage-level failure.
  - load_state() never raises. A missing, unreadable or malformed blob yields
    a fresh default ledger, and the reason is logged at WARNING.
  - Save failures are handled by the engine (logged, then ignored).

Layer rules:
  - No Flask imports. SqlAlchemyLedgerStore takes a session argument; the
    Flask extension passes db.session.
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Protocol

from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.errors import PersistenceError
from backend.app.models.ledger_record import LedgerRecord
from backend.app.models.ledger_state import LedgerState
from backend.app.schemas.ledger_schema import PersistedLedgerSchema
from backend.app.services.money import DEFAULT_CURRENCY_SYMBOL

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "billSplitter.v1"
DEFAULT_PEOPLE = ("Apurv", "Dhaivat", "Nishant", "Rutvik")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ── Store protocol and implementations ─────────────────────────────────────

class LedgerStore(Protocol):

    def load(self) -> dict | None: ...

    def save(self, blob: dict) -> None: ...

    def clear(self) -> None: ...


class InMemoryLedgerStore:
    """Process-local store. Keeps its own deep copy so callers cannot alias it."""

    def __init__(self, initial: dict | None = None) -> None:
        self._blob = copy.deepcopy(initial)

    def load(self) -> dict | None:
        return copy.deepcopy(self._blob)

    def save(self, blob: dict) -> None:
        self._blob = copy.deepcopy(blob)

    def clear(self) -> None:
        self._blob = None


class SqlAlchemyLedgerStore:
    """
    Stores the blob as JSON text in the ledger_records table, one row per key.

    Unlike the service layer, this store commits. It is a storage transport,
    and each save() must be durable on its own.
    """

    def __init__(self, session: Session, key: str = DEFAULT_STORAGE_KEY) -> None:
        self.session = session
        self.key = key

    def load(self) -> dict | None:
        try:
            record = self.session.get(LedgerRecord, self.key)
            if record is None:
                return None
            return json.loads(record.payload)
        except (SQLAlchemyError, ValueError) as exc:
            self._rollback()
            raise PersistenceError(self.key, f"Could not load ledger: {exc}") from exc

    def save(self, blob: dict) -> None:
        try:
            payload = json.dumps(blob)
            record = self.session.get(LedgerRecord, self.key)
            if record is None:
                self.session.add(LedgerRecord(key=self.key, payload=payload))
            else:
                record.payload = payload
            self.session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            self._rollback()
            raise PersistenceError(self.key, f"Could not save ledger: {exc}") from exc

    def clear(self) -> None:
        try:
            record = self.session.get(LedgerRecord, self.key)
            if record is not None:
                self.session.delete(record)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._rollback()
            raise PersistenceError(self.key, f"Could not clear ledger: {exc}") from exc

    def _rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed for ledger key %s", self.key)


# ── State construction ─────────────────────────────────────────────────────

def default_state(
        people: Iterable[str] = DEFAULT_PEOPLE,
        clock: Clock = utc_now,
) -> LedgerState:
    """A fresh ledger: default roster, zero bill, creation time stamped now."""
    roster = list(people)
    return LedgerState(
        participants=roster,
        allocations={p: Decimal("0") for p in roster},
        created_at=clock().isoformat(),
    )


def load_state(
        store: LedgerStore,
        people: Iterable[str] = DEFAULT_PEOPLE,
        clock: Clock = utc_now,
        symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> tuple[LedgerState, bool]:
    """
    Loads and validates the persisted ledger.

    Returns:
        (state, True)  when a valid blob was found.
        (default_state(...), False) when there is no blob or it was rejected.
    """
    try:
        blob = store.load()
    except PersistenceError as exc:
        logger.warning("Falling back to a fresh ledger: %s", exc)
        return default_state(people, clock), False

    if blob is None:
        return default_state(people, clock), False

    try:
        data = PersistedLedgerSchema().load(blob)
    except ValidationError as exc:
        logger.warning("Ignoring malformed persisted ledger: %s", exc.messages)
        return default_state(people, clock), False

    state = LedgerState.from_dict(data, symbol)

    # Backfill: every current participant has an allocation entry.
    for p in state.participants:
        state.allocations.setdefault(p, Decimal("0"))
    if not state.created_at:
        state.created_at = clock().isoformat()

    return state, True
