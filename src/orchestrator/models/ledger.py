"""Ledger models.

Each table is append-only: one row per state transition of a request. The
row with the highest id for a ``request_id`` is the request's latest record.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from orchestrator.models.base import Base, TimestampMixin


class DepositLedgerEntry(Base, TimestampMixin):
    """Deposit ledger table (source chain -> destination chain)."""

    __tablename__ = "deposit_ledger"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    request_id: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    user: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(78, 0), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Transaction hashes, carried forward from earlier entries
    source_tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    withdraw_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    bridge_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    confirm_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    fund_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    destination_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    def __repr__(self) -> str:
        return f"<DepositLedgerEntry(id={self.id}, request_id={self.request_id}, status={self.status})>"


class RedemptionLedgerEntry(Base, TimestampMixin):
    """Redemption ledger table (destination chain -> source chain)."""

    __tablename__ = "redemption_ledger"

    # SQLite only autoincrements INTEGER primary keys
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    request_id: Mapped[str] = mapped_column(String(66), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(78, 0), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    request_tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    withdraw_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    bridge_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    confirm_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    return_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    complete_tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    def __repr__(self) -> str:
        return f"<RedemptionLedgerEntry(id={self.id}, request_id={self.request_id}, status={self.status})>"
