"""Create deposit and redemption ledger tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "deposit_ledger",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.String(66), nullable=False),
        sa.Column("user", sa.String(42), nullable=False),
        sa.Column("amount", sa.Numeric(78, 0), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("source_tx_hash", sa.String(66), nullable=False),
        sa.Column("withdraw_tx_hash", sa.String(66), nullable=True),
        sa.Column("bridge_tx_hash", sa.String(66), nullable=True),
        sa.Column("confirm_tx_hash", sa.String(66), nullable=True),
        sa.Column("fund_tx_hash", sa.String(66), nullable=True),
        sa.Column("destination_tx_hash", sa.String(66), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_deposit_ledger_request_id", "deposit_ledger", ["request_id"])
    op.create_index("ix_deposit_ledger_status", "deposit_ledger", ["status"])

    op.create_table(
        "redemption_ledger",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.String(66), nullable=False),
        sa.Column("amount", sa.Numeric(78, 0), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("request_tx_hash", sa.String(66), nullable=False),
        sa.Column("withdraw_tx_hash", sa.String(66), nullable=True),
        sa.Column("bridge_tx_hash", sa.String(66), nullable=True),
        sa.Column("confirm_tx_hash", sa.String(66), nullable=True),
        sa.Column("return_tx_hash", sa.String(66), nullable=True),
        sa.Column("complete_tx_hash", sa.String(66), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_redemption_ledger_request_id", "redemption_ledger", ["request_id"])
    op.create_index("ix_redemption_ledger_status", "redemption_ledger", ["status"])


def downgrade() -> None:
    op.drop_index("ix_redemption_ledger_status", table_name="redemption_ledger")
    op.drop_index("ix_redemption_ledger_request_id", table_name="redemption_ledger")
    op.drop_table("redemption_ledger")

    op.drop_index("ix_deposit_ledger_status", table_name="deposit_ledger")
    op.drop_index("ix_deposit_ledger_request_id", table_name="deposit_ledger")
    op.drop_table("deposit_ledger")
