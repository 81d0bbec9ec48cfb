"""
routes/ledger.py — Ledger route handlers.

This blueprint is the input and rendering side of the ledger. It turns
request bodies into engine calls and turns the resulting state into the view
the browser draws.

Layer rules:
  - Parse, validate, call ONE engine operation, return envelope.
  - No ledger arithmetic here. _serialize_view() is pure data shaping.
  - Silent no-ops from the engine are reported as warnings on a 200.

Endpoints (url_prefix=/api/v1/ledger):
  GET    /                         → 200  current view
  POST   /bill                     → 200  set the bill
  POST   /payments                 → 201  record a payment
  POST   /people                   → 201  add a participant
  DELETE /people/<name>?confirm=1  → 200  remove a participant
  DELETE /transactions/<index>     → 200  delete a transaction
  POST   /undo                     → 200
  POST   /redo                     → 200
  POST   /reset                    → 200  discard everything
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backend.app.errors import WarningCode
from backend.app.extensions import ledger
from backend.app.models.ledger_state import LedgerPhase
from backend.app.schemas.ledger_schema import (
    AddPersonSchema,
    RemovePersonSchema,
    SetBillSchema,
    SubmitPaymentSchema,
)
from backend.app.services.ledger_service import LedgerEngine
from backend.app.services.money import format_currency

ledger_bp = Blueprint("ledger", __name__)


# ── Serialization helper ───────────────────────────────────────────────────
# Pure data shaping. No mutation, no logic. Amounts as strings.

def _serialize_view(engine: LedgerEngine) -> dict:
    """Everything the page needs to redraw itself, roster included."""
    state = engine.state
    symbol = engine.currency_symbol
    active = state.phase == LedgerPhase.ACTIVE

    return {
        "phase": state.phase.value,
        "bill_amount": state.bill_amount,
        "remaining_amount": state.remaining_amount,
        "remaining_display": format_currency(state.remaining_amount, symbol),
        "participants": list(state.participants),
        "allocations": [
            {"name": name, "amount": amount}
            for name, amount in state.allocations.items()
        ],
        "transactions": [
            {
                "index": i,
                "amount": t.amount,
                "amount_display": t.formatted_amount(symbol),
                "people": t.payer_names,
            }
            for i, t in enumerate(state.transactions)
        ],
        # Not drawn until a bill exists.
        "final_split": [
            {
                "name": name,
                "amount": total,
                "amount_display": format_currency(total, symbol),
            }
            for name, total in engine.final_split()
        ] if active else [],
        "can_undo": engine.history.can_undo,
        "can_redo": engine.history.can_redo,
        "created_at": state.created_at,
    }


def _envelope(engine: LedgerEngine, status: int = 200, warnings: list[str] | None = None):
    return jsonify({"data": _serialize_view(engine), "warnings": warnings or []}), status


# ── Routes ─────────────────────────────────────────────────────────────────

@ledger_bp.route("/", methods=["GET"])
def get_ledger():
    """GET /ledger — Current ledger view."""
    return _envelope(ledger.engine)


@ledger_bp.route("/bill", methods=["POST"])
def set_bill():
    """POST /ledger/bill — Set the bill amount (UNSET → ACTIVE)."""
    data = SetBillSchema().load(request.get_json(force=True, silent=True) or {})
    engine = ledger.engine
    engine.set_bill(data["amount"])
    return _envelope(engine)


@ledger_bp.route("/payments", methods=["POST"])
def submit_payment():
    """POST /ledger/payments — Record a payment split among the selected people."""
    data = SubmitPaymentSchema().load(request.get_json(force=True, silent=True) or {})
    engine = ledger.engine
    engine.submit_payment(data["amount"], data["people"])
    return _envelope(engine, 201)


@ledger_bp.route("/people", methods=["POST"])
def add_person():
    """POST /ledger/people — Add a participant (trimmed, case-insensitively unique)."""
    data = AddPersonSchema().load(request.get_json(force=True, silent=True) or {})
    engine = ledger.engine
    engine.add_person(data["name"])
    return _envelope(engine, 201)


@ledger_bp.route("/people/<path:name>", methods=["DELETE"])
def remove_person(name: str):
    """
    DELETE /ledger/people/:name?confirm=true

    The query flag is the user's answer to the confirmation prompt. Without
    it (or with confirm=false) nothing is removed.
    """
    data = RemovePersonSchema().load(request.args.to_dict())
    engine = ledger.engine

    # The engine only asks for confirmation, under its lock, when the name
    # is on the roster; that tells the two no-op outcomes apart.
    asked: list[str] = []

    def answer(person: str) -> bool:
        asked.append(person)
        return data["confirm"]

    if engine.remove_person(name, confirm=answer):
        warnings = []
    elif asked:
        warnings = [WarningCode.REMOVAL_DECLINED]
    else:
        warnings = [WarningCode.PARTICIPANT_NOT_FOUND]
    return _envelope(engine, warnings=warnings)


@ledger_bp.route("/transactions/<int:index>", methods=["DELETE"])
def delete_transaction(index: int):
    """DELETE /ledger/transactions/:index — Delete one transaction and replay the log."""
    engine = ledger.engine
    deleted = engine.delete_transaction(index)
    warnings = [] if deleted else [WarningCode.TRANSACTION_NOT_FOUND]
    return _envelope(engine, warnings=warnings)


@ledger_bp.route("/undo", methods=["POST"])
def undo():
    engine = ledger.engine
    warnings = [] if engine.undo() else [WarningCode.NOTHING_TO_UNDO]
    return _envelope(engine, warnings=warnings)


@ledger_bp.route("/redo", methods=["POST"])
def redo():
    engine = ledger.engine
    warnings = [] if engine.redo() else [WarningCode.NOTHING_TO_REDO]
    return _envelope(engine, warnings=warnings)


@ledger_bp.route("/reset", methods=["POST"])
def reset():
    """POST /ledger/reset — Discard the ledger and its history. Not undoable."""
    engine = ledger.engine
    engine.reset()
    return _envelope(engine)
