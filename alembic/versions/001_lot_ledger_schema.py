"""Lot ledger schema - transactions, realized gains, audit.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ledger_transactions ---
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False, server_default="default"),
        sa.Column("instrument_id", sa.String(64), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("ACQUISITION", "DISPOSAL", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("trade_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("modified_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ledger_transactions_account_id", "ledger_transactions", ["account_id"])
    op.create_index("ix_ledger_transactions_instrument_id", "ledger_transactions", ["instrument_id"])
    op.create_index(
        "ix_ledger_transactions_lookup",
        "ledger_transactions",
        ["account_id", "instrument_id", "transaction_type", "trade_date"],
    )

    # --- realized_gains ---
    op.create_table(
        "realized_gains",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False, server_default="default"),
        sa.Column("acquisition_id", sa.Integer(), nullable=False),
        sa.Column("disposal_id", sa.Integer(), nullable=False),
        sa.Column("instrument_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_cost_basis", sa.Float(), nullable=False),
        sa.Column("unit_proceeds", sa.Float(), nullable=False),
        sa.Column("acquisition_date", sa.Date(), nullable=False),
        sa.Column("disposal_date", sa.Date(), nullable=False),
        sa.Column("holding_period_days", sa.Integer(), nullable=False),
        sa.Column("bucket", sa.Enum("SHORT", "LONG", name="gainbucket"), nullable=False),
        sa.Column("gain_amount", sa.Float(), nullable=False),
        sa.Column("financial_year", sa.String(9), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["acquisition_id"], ["ledger_transactions.id"]),
        sa.ForeignKeyConstraint(["disposal_id"], ["ledger_transactions.id"]),
    )
    op.create_index("ix_realized_gains_account_id", "realized_gains", ["account_id"])
    op.create_index("ix_realized_gains_acquisition_id", "realized_gains", ["acquisition_id"])
    op.create_index("ix_realized_gains_disposal_id", "realized_gains", ["disposal_id"])
    op.create_index("ix_realized_gains_financial_year", "realized_gains", ["financial_year"])

    # --- transaction_audit ---
    op.create_table(
        "transaction_audit",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.Column("field_name", sa.String(64), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transaction_audit_record_id", "transaction_audit", ["record_id"])
    op.create_index("ix_transaction_audit_modified_at", "transaction_audit", ["modified_at"])


def downgrade() -> None:
    op.drop_table("transaction_audit")
    op.drop_table("realized_gains")
    op.drop_table("ledger_transactions")
    sa.Enum(name="gainbucket").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="transactiontype").drop(op.get_bind(), checkfirst=True)
