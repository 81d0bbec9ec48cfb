"""
services/ledger_service.py — LedgerEngine: the only mutation entry points.

Every operation follows the same order:
  1. Validate input. On failure raise AppError. Nothing has changed yet and
     no history has been pushed.
  2. Snapshot the current state onto the undo stack.
  3. Mutate. Payments and additions are applied incrementally. Removals and
     transaction deletions trigger a full recalculate().
  4. Persist through the store. A PersistenceError is logged and ignored.
  5. Notify listeners (the rendering side) with the new state.

Silent guards (return False, no history, no error):
  - remove_person() for a name not on the roster, or when confirmation is declined
  - delete_transaction() for an out-of-range index
  - undo()/redo() with an empty stack

Concurrency:
  All operations run under one re-entrant lock, so steps 1-5 never
  interleave between threads.

Layer rules:
  - No Flask imports. Collaborators (store, confirm callback, listeners,
    clock) are injected.
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Callable, Iterable

from backend.app.errors import AppError, ErrorCode, PersistenceError
from backend.app.models.ledger_state import (
    PAYER_SEPARATOR,
    LedgerPhase,
    LedgerState,
    Transaction,
)
from backend.app.services.history_service import HistoryManager
from backend.app.services.money import (
    DEFAULT_CURRENCY_SYMBOL,
    MAX_AMOUNT,
    format_currency,
    is_within_limit,
    parse_amount,
)
from backend.app.services.persistence_service import (
    DEFAULT_PEOPLE,
    Clock,
    InMemoryLedgerStore,
    LedgerStore,
    default_state,
    load_state,
    utc_now,
)
from backend.app.services.recalculation_service import final_split, recalculate

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]
Listener = Callable[[LedgerState, "LedgerEngine"], None]


def _always_confirm(name: str) -> bool:
    return True


class LedgerEngine:
    """
    Owns one LedgerState plus its undo/redo history.

    Args:
        store:           Persistence transport. Defaults to an in-memory store.
        default_people:  Roster for a fresh ledger (first run and reset()).
        currency_symbol: Used for persisted transaction amounts and messages.
        confirm:         Default yes/no callback for remove_person().
        clock:           Zero-arg callable returning an aware datetime.
    """

    def __init__(
            self,
            store: LedgerStore | None = None,
            default_people: Iterable[str] | None = None,
            currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
            confirm: ConfirmCallback | None = None,
            clock: Clock | None = None,
    ) -> None:
        self.store: LedgerStore = store if store is not None else InMemoryLedgerStore()
        self.default_people = tuple(default_people if default_people is not None else DEFAULT_PEOPLE)
        self.currency_symbol = currency_symbol
        self.confirm: ConfirmCallback = confirm or _always_confirm
        self.clock: Clock = clock or utc_now

        self.history = HistoryManager()
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

        self._state, restored = load_state(
            self.store, self.default_people, self.clock, self.currency_symbol,
        )
        logger.info(
            "Ledger %s (%d participants, %d transactions)",
            "restored" if restored else "created",
            len(self._state.participants),
            len(self._state.transactions),
        )
        self._persist()

    # ── Read-only accessors ────────────────────────────────────────────────

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def phase(self) -> LedgerPhase:
        return self._state.phase

    def final_split(self) -> list[tuple[str, Decimal]]:
        with self._lock:
            return final_split(self._state)

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # ── Mutations ──────────────────────────────────────────────────────────

    def set_bill(self, amount) -> LedgerState:
        """Sets the bill and moves the ledger from UNSET to ACTIVE."""
        with self._lock:
            value = self._require_positive_amount(amount)

            if self._state.phase == LedgerPhase.ACTIVE:
                raise AppError(
                    ErrorCode.BILL_ALREADY_SET,
                    f"The bill is already set to "
                    f"{format_currency(self._state.bill_amount, self.currency_symbol)}.",
                    409,
                    field="amount",
                )

            self.history.snapshot(self._state)
            self._state.bill_amount = value
            self._state.remaining_amount = value

            logger.info("Bill set to %s", value)
            self._changed()
            return self._state

    def submit_payment(self, amount, selected: Iterable[str]) -> Transaction:
        """
        Records a partial payment split equally among `selected`.

        Allocations are updated incrementally. Earlier transactions are not
        replayed.
        """
        with self._lock:
            value = self._require_positive_amount(amount)
            remaining = self._state.remaining_amount

            if value > remaining:
                raise AppError(
                    ErrorCode.AMOUNT_EXCEEDS_REMAINING,
                    f"Amount exceeds remaining "
                    f"({format_currency(remaining, self.currency_symbol)}).",
                    422,
                    field="amount",
                )

            payers = tuple(dict.fromkeys(selected))
            if not payers:
                raise AppError(
                    ErrorCode.NO_PARTICIPANT_SELECTED,
                    "Please select at least one person.",
                    422,
                    field="people",
                )
            # Persisted transactions join payer names with the separator.
            if any(isinstance(p, str) and PAYER_SEPARATOR in p for p in payers):
                raise AppError(
                    ErrorCode.INVALID_NAME,
                    f'Names cannot contain "{PAYER_SEPARATOR}".',
                    400,
                    field="people",
                )

            self.history.snapshot(self._state)

            per_person = value / len(payers)
            allocations = self._state.allocations
            for person in payers:
                allocations[person] = allocations.get(person, Decimal("0")) + per_person

            self._state.remaining_amount -= value
            tx = Transaction(amount=value, payers=payers)
            self._state.transactions.append(tx)

            logger.info("Payment of %s recorded for %s", value, tx.payer_names)
            self._changed()
            return tx

    def add_person(self, name: str) -> str:
        """Adds a participant with a zero allocation. Returns the trimmed name."""
        with self._lock:
            cleaned = (name or "").strip()
            if not cleaned:
                raise AppError(
                    ErrorCode.INVALID_NAME,
                    "Enter a valid name.",
                    400,
                    field="name",
                )
            if PAYER_SEPARATOR in cleaned:
                raise AppError(
                    ErrorCode.INVALID_NAME,
                    f'Names cannot contain "{PAYER_SEPARATOR}".',
                    400,
                    field="name",
                )
            if self._state.has_participant(cleaned):
                raise AppError(
                    ErrorCode.DUPLICATE_PARTICIPANT,
                    f'"{cleaned}" already exists.',
                    409,
                    field="name",
                )

            self.history.snapshot(self._state)
            self._state.participants.append(cleaned)
            self._state.allocations[cleaned] = Decimal("0")

            logger.info("Participant %s added", cleaned)
            self._changed()
            return cleaned

    def remove_person(self, name: str, confirm: ConfirmCallback | None = None) -> bool:
        """
        Removes a participant after confirmation, then replays the log so that
        each remaining transaction is re-split among its surviving payers.

        Returns True if the roster changed.
        """
        with self._lock:
            if name not in self._state.participants:
                logger.debug("remove_person: %s is not on the roster", name)
                return False

            ask = confirm or self.confirm
            if not ask(name):
                logger.debug("remove_person: removal of %s declined", name)
                return False

            self.history.snapshot(self._state)
            self._state.participants = [p for p in self._state.participants if p != name]
            self._state.allocations.pop(name, None)
            recalculate(self._state)

            logger.info("Participant %s removed", name)
            self._changed()
            return True

    def delete_transaction(self, index: int) -> bool:
        """Deletes the transaction at `index` and replays the log. False if out of range."""
        with self._lock:
            if (
                    isinstance(index, bool)
                    or not isinstance(index, int)
                    or not 0 <= index < len(self._state.transactions)
            ):
                logger.debug("delete_transaction: index %r out of range", index)
                return False

            self.history.snapshot(self._state)
            removed = self._state.transactions.pop(index)
            recalculate(self._state)

            logger.info(
                "Transaction %d (%s for %s) deleted",
                index, removed.amount, removed.payer_names,
            )
            self._changed()
            return True

    def undo(self) -> bool:
        with self._lock:
            restored = self.history.undo(self._state)
            if restored is None:
                return False
            self._state = restored
            logger.info("Undo (%d more available)", self.history.undo_depth)
            self._changed()
            return True

    def redo(self) -> bool:
        with self._lock:
            restored = self.history.redo(self._state)
            if restored is None:
                return False
            self._state = restored
            logger.info("Redo (%d more available)", self.history.redo_depth)
            self._changed()
            return True

    def reset(self) -> LedgerState:
        """
        Discards everything: persisted blob, both history stacks and the live
        state. Not undoable.
        """
        with self._lock:
            try:
                self.store.clear()
            except PersistenceError as exc:
                logger.warning("Could not clear persisted ledger: %s", exc)

            self.history.clear()
            self._state = default_state(self.default_people, self.clock)

            logger.info("Ledger reset")
            self._changed()
            return self._state

    # ── Internals ──────────────────────────────────────────────────────────

    def _require_positive_amount(self, amount) -> Decimal:
        value = parse_amount(amount)
        if value is None or value <= 0:
            raise AppError(
                ErrorCode.INVALID_AMOUNT,
                "Please enter a valid amount.",
                400,
                field="amount",
            )
        if not is_within_limit(value):
            raise AppError(
                ErrorCode.INVALID_AMOUNT,
                f"Amount cannot exceed {format_currency(MAX_AMOUNT, self.currency_symbol)}.",
                400,
                field="amount",
            )
        return value

    def _changed(self) -> None:
        self._persist()
        for listener in list(self._listeners):
            try:
                listener(self._state, self)
            except Exception:
                logger.exception("Ledger listener %r failed", listener)

    def _persist(self) -> None:
        try:
            self.store.save(self._state.to_dict(self.currency_symbol))
        except PersistenceError as exc:
            logger.warning("Could not save ledger: %s", exc)
