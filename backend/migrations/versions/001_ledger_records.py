"""Ledger key/value table.

Revision: 001_ledger_records
Created:  2026-10-19

Creates ledger_records: one row per storage key, holding the ledger blob
as JSON text (see models/ledger_record.py).

Append-only: this file must NEVER be edited after it has been applied to
any database. Schema changes go in a NEW migration file.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_ledger_records"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_records",
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("key", name="pk_ledger_records"),
        sa.CheckConstraint(
            "LENGTH(TRIM(key)) > 0",
            name="ck_ledger_records_key_nonempty",
        ),
    )


def downgrade() -> None:
    op.drop_table("ledger_records")
