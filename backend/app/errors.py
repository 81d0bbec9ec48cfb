"""
errors.py — Ledger errors, plus the error and warning code registries.

Two kinds of failure exist in the ledger:
  - AppError: a rejected request. The engine raises it before touching any
    state or history, so the ledger is unchanged. The app's error handler
    turns it into {"error": {"code", "message", "field"?}}.
  - PersistenceError: the store could not read or write the blob. It is
    recovered where it happens (fresh ledger on load, logged on save) and
    never reaches the client.

Codes are part of the API. Messages are prose for the user and may change.
"""

from __future__ import annotations


class AppError(Exception):
    """A rejected ledger operation, carrying its HTTP status and offending field."""

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return {"error": body}

    def __repr__(self) -> str:
        return f"AppError({self.code!r}, {self.http_status}, field={self.field!r})"


class PersistenceError(Exception):
    """Raised by a ledger store when the underlying storage read/write fails."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"[{key}] {message}")
        self.key     = key
        self.message = message


# ── Error codes ────────────────────────────────────────────────────────────
# Sent as error.code. HTTP status per group in the comments.

class ErrorCode:

    # ── Request shape (400) ────────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_NAME               = "INVALID_NAME"

    # ── Ledger conflicts (409) ─────────────────────────────────────────────
    DUPLICATE_PARTICIPANT      = "DUPLICATE_PARTICIPANT"
    BILL_ALREADY_SET           = "BILL_ALREADY_SET"

    # ── Payment rules (422) ────────────────────────────────────────────────
    AMOUNT_EXCEEDS_REMAINING   = "AMOUNT_EXCEEDS_REMAINING"
    NO_PARTICIPANT_SELECTED    = "NO_PARTICIPANT_SELECTED"

    # ── Unexpected (500) ───────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning codes ──────────────────────────────────────────────────────────
# Sent in the `warnings` array of a 200 when the engine accepted the
# request but had nothing to change.

class WarningCode:

    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    REMOVAL_DECLINED      = "REMOVAL_DECLINED"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    NOTHING_TO_UNDO       = "NOTHING_TO_UNDO"
    NOTHING_TO_REDO       = "NOTHING_TO_REDO"
