"""
models/ledger_state.py — In-memory ledger aggregate.

Plain dataclasses. No business logic, no storage, no Flask. The engine in
services/ledger_service.py is the only code allowed to mutate a LedgerState.

Key design points:
  - Amounts are Decimal everywhere. The persisted form stores transaction
    amounts as pre-formatted currency strings ("€12.34") and the other
    amounts as JSON numbers; that conversion happens only in to_dict() and
    from_dict().
  - LedgerPhase is derived from bill_amount and never stored.
  - created_at is an ISO-8601 string, set once and carried verbatim.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from decimal import Decimal

from backend.app.services.money import (
    DEFAULT_CURRENCY_SYMBOL,
    format_currency,
    parse_currency,
)

PAYER_SEPARATOR = ", "


class LedgerPhase(str, enum.Enum):
    """UNSET until a bill is set; only set_bill is meaningful before that."""
    UNSET  = "unset"
    ACTIVE = "active"


@dataclass(frozen=True)
class Transaction:
    """One recorded payment: a raw amount and the payers credited at the time."""
    amount: Decimal
    payers: tuple[str, ...]

    def formatted_amount(self, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
        return format_currency(self.amount, symbol)

    @property
    def payer_names(self) -> str:
        return PAYER_SEPARATOR.join(self.payers)

    def to_dict(self, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> dict:
        return {
            "amount": self.formatted_amount(symbol),
            "people": self.payer_names,
        }

    @classmethod
    def from_dict(cls, d: dict, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> "Transaction":
        people = d.get("people") or ""
        return cls(
            amount=parse_currency(d.get("amount"), symbol),
            payers=tuple(p for p in people.split(PAYER_SEPARATOR) if p),
        )


@dataclass
class LedgerState:
    """Complete ledger: bill, roster, per-person allocations and payment log."""
    bill_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    participants: list[str] = field(default_factory=list)
    allocations: dict[str, Decimal] = field(default_factory=dict)
    transactions: list[Transaction] = field(default_factory=list)
    created_at: str | None = None

    @property
    def phase(self) -> LedgerPhase:
        return LedgerPhase.ACTIVE if self.bill_amount > 0 else LedgerPhase.UNSET

    def has_participant(self, name: str) -> bool:
        """Case-insensitive membership test used for duplicate detection."""
        folded = name.casefold()
        return any(p.casefold() == folded for p in self.participants)

    def to_dict(self, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> dict:
        """Serialises to the persisted JSON shape (amounts as JSON numbers)."""
        return {
            "billAmount": float(self.bill_amount),
            "remainingAmount": float(self.remaining_amount),
            "people": list(self.participants),
            "payments": {name: float(v) for name, v in self.allocations.items()},
            "transactions": [t.to_dict(symbol) for t in self.transactions],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> "LedgerState":
        """
        Builds a state from a dict already validated by PersistedLedgerSchema
        (snake_case keys, Decimal values, transactions as wire dicts).
        """
        return cls(
            bill_amount=d.get("bill_amount") or Decimal("0"),
            remaining_amount=d.get("remaining_amount") or Decimal("0"),
            participants=list(d.get("people") or []),
            allocations=dict(d.get("payments") or {}),
            transactions=[
                Transaction.from_dict(t, symbol) for t in d.get("transactions") or []
            ],
            created_at=d.get("created_at"),
        )
