"""
schemas/ledger_schema.py — Marshmallow schemas for the ledger.

Validation responsibility:
  - This file:
      - Request body shape for every ledger endpoint (types, required keys).
      - Persisted blob shape (PersistedLedgerSchema): the roster must be a
        list of strings and billAmount must be a JSON number. Anything else
        is rejected and the engine falls back to a fresh ledger.
  - services/ledger_service.py:
      - Positive/finite amount checks         (INVALID_AMOUNT, 400)
      - Amount vs. remaining                  (AMOUNT_EXCEEDS_REMAINING, 422)
      - Empty selection                       (NO_PARTICIPANT_SELECTED, 422)
      - Trimmed-empty and duplicate names     (INVALID_NAME / DUPLICATE_PARTICIPANT)
    These live in the engine because it must enforce them with or without
    an HTTP layer in front of it.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    validates_schema,
)

from backend.app.errors import ErrorCode


def _is_json_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── Request bodies ─────────────────────────────────────────────────────────

class SetBillSchema(Schema):
    """POST /ledger/bill"""

    # Range (> 0) is checked by the engine; NaN/Infinity are rejected here.
    amount = fields.Decimal(
        required=True,
        allow_nan=False,
        error_messages={
            "invalid": ErrorCode.INVALID_AMOUNT,
            "special": ErrorCode.INVALID_AMOUNT,
        },
    )


class SubmitPaymentSchema(Schema):
    """
    POST /ledger/payments

    `people` is the selected subset of the roster, in display order.
    An empty list is accepted here; the engine decides whether it is valid.
    """

    amount = fields.Decimal(
        required=True,
        allow_nan=False,
        error_messages={
            "invalid": ErrorCode.INVALID_AMOUNT,
            "special": ErrorCode.INVALID_AMOUNT,
        },
    )
    people = fields.List(fields.Str(), load_default=list)


class AddPersonSchema(Schema):
    """POST /ledger/people — trimming and duplicate checks happen in the engine."""

    name = fields.Str(required=True)


class RemovePersonSchema(Schema):
    """DELETE /ledger/people/<name>?confirm=true — the confirmation answer."""

    class Meta:
        unknown = EXCLUDE

    confirm = fields.Bool(load_default=False)


# ── Persisted blob ─────────────────────────────────────────────────────────

class TransactionWireSchema(Schema):
    """One persisted transaction: {"amount": "€12.34", "people": "A, B"}."""

    class Meta:
        unknown = EXCLUDE

    amount = fields.Raw(load_default="")
    people = fields.Str(load_default="", allow_none=True)


class PersistedLedgerSchema(Schema):
    """
    Validates a blob returned by a LedgerStore before it becomes live state.

    Output keys are snake_case; amounts are Decimal. Missing or null optional
    keys fall back to empty/zero values, matching how older blobs were read.
    """

    class Meta:
        unknown = EXCLUDE

    bill_amount = fields.Decimal(data_key="billAmount", required=True, allow_nan=False)
    remaining_amount = fields.Decimal(
        data_key="remainingAmount", load_default=None, allow_none=True, allow_nan=False,
    )
    people = fields.List(fields.Str(), required=True)
    payments = fields.Dict(
        keys=fields.Str(),
        values=fields.Decimal(allow_nan=False),
        load_default=None,
        allow_none=True,
    )
    transactions = fields.List(
        fields.Nested(TransactionWireSchema),
        load_default=None,
        allow_none=True,
    )
    created_at = fields.Str(data_key="createdAt", load_default=None, allow_none=True)

    @validates_schema(pass_original=True)
    def validate_numeric_bill(self, data: dict, original_data: dict, **kwargs) -> None:
        """billAmount must be a JSON number, not a numeric-looking string."""
        if not _is_json_number(original_data.get("billAmount")):
            raise ValidationError("billAmount must be a number.", "billAmount")
