"""Invoice numbering and ledger tables

Revision ID: 3f9a1c7d2b40
Revises:
Create Date: 2026-10-18 11:02:41.518203

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9a1c7d2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "invoice_series_settings",
        sa.Column("owner", sa.String(64), primary_key=True),
        sa.Column("prefix", sa.String(16), nullable=True),
        sa.Column("padding", sa.Integer(), nullable=True),
        sa.Column("series_format", sa.String(64), nullable=True),
        sa.Column("start_number", sa.BigInteger(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "invoice_counters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner", sa.String(64), nullable=False),
        sa.Column("series", sa.String(16), nullable=False),
        sa.Column("next_number", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("owner", "series", name="uq_invoice_counter_owner_series"),
    )

    op.create_table(
        "invoice_number_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("scope", sa.String(20), nullable=False),
        sa.Column("reference_id", sa.String(128), nullable=False),
        sa.Column("owner", sa.String(64), nullable=False),
        sa.Column("merchant_id", sa.String(64), nullable=False),
        sa.Column("series", sa.String(16), nullable=False),
        sa.Column("sequence", sa.BigInteger(), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("scope", "owner", "reference_id", name="uq_invoice_number_reference"),
        sa.UniqueConstraint("owner", "invoice_number", name="uq_invoice_number_owner_number"),
    )
    op.create_index(
        "ix_invoice_number_records_merchant_id",
        "invoice_number_records",
        ["merchant_id"],
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("merchant_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="SUCCESS"),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("order_number", sa.String(64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_ledger_entries_merchant_type_time",
        "ledger_entries",
        ["merchant_id", "type", "occurred_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_ledger_entries_merchant_type_time", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("ix_invoice_number_records_merchant_id", table_name="invoice_number_records")
    op.drop_table("invoice_number_records")
    op.drop_table("invoice_counters")
    op.drop_table("invoice_series_settings")
