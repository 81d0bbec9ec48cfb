"""
services/recalculation_service.py — Ledger replay and final split.

This file is the SINGLE SOURCE OF TRUTH for how remaining_amount and the
per-participant allocations are rebuilt from the transaction log. Do not
reimplement the replay anywhere else.

Invariants guaranteed after recalculate():
  - remaining_amount == bill_amount - sum(every transaction amount),
    whoever paid it.
  - allocations has exactly one entry per current participant.
  - sum(allocations) == sum of the transactions with at least one payer
    still on the roster. Each is split equally among the payers still present.

Orphaned funds: a transaction whose payers have all been
removed still reduces remaining_amount but is credited to nobody.

When to call:
  - ALWAYS after a participant is removed or a transaction is deleted.
  - NEVER after a payment or a participant addition; those are applied
    incrementally by the engine.

Layer rules:
  - No Flask imports, no storage. Operates on a LedgerState in place.
"""

from __future__ import annotations

from decimal import Decimal

from backend.app.models.ledger_state import LedgerState

_ZERO = Decimal("0")


def recalculate(state: LedgerState) -> LedgerState:
    """
    Replays the transaction log against the current roster.

    Division is plain Decimal division per eligible payer. There is no
    remainder redistribution; drift in the last digit is accepted.

    Returns the same (mutated) state for convenience.
    """
    current = set(state.participants)

    state.remaining_amount = state.bill_amount
    state.allocations = {p: _ZERO for p in state.participants}

    for tx in state.transactions:
        state.remaining_amount -= tx.amount

        eligible = [p for p in tx.payers if p in current]
        if not eligible:
            continue  # orphaned funds

        share = tx.amount / len(eligible)
        for payer in eligible:
            state.allocations[payer] += share

    return state


def final_split(state: LedgerState) -> list[tuple[str, Decimal]]:
    """
    Each participant's displayed total: what they have already been allocated
    plus an equal slice of whatever remains unpaid.

    An empty roster is treated as a roster of one so the division is defined.
    """
    count = len(state.participants) or 1
    shared_remaining = state.remaining_amount / count
    return [
        (p, state.allocations.get(p, _ZERO) + shared_remaining)
        for p in state.participants
    ]
