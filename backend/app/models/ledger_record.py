"""
models/ledger_record.py — Key/value table backing SqlAlchemyLedgerStore.

One row per storage key. `payload` holds the ledger blob as JSON text,
exactly as LedgerState.to_dict() produced it. No business logic here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerRecord(db.Model):
    __tablename__ = "ledger_records"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(key)) > 0",
            name="ck_ledger_records_key_nonempty",
        ),
    )

    # e.g. "billSplitter.v1"; see LEDGER_STORAGE_KEY in config.py.
    key: Mapped[str] = mapped_column(String(100), primary_key=True)

    payload: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<LedgerRecord key={self.key!r} updated_at={self.updated_at}>"
