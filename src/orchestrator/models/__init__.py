"""Database models for the settlement ledger."""

from orchestrator.models.base import Base, TimestampMixin
from orchestrator.models.ledger import DepositLedgerEntry, RedemptionLedgerEntry

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Ledger
    "DepositLedgerEntry",
    "RedemptionLedgerEntry",
]
