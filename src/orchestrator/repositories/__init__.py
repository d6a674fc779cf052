"""Repository layer for database access."""

from orchestrator.repositories.base import BaseRepository
from orchestrator.repositories.ledger import (
    DepositLedgerRepository,
    LedgerRepository,
    RedemptionLedgerRepository,
)

__all__ = [
    "BaseRepository",
    "LedgerRepository",
    "DepositLedgerRepository",
    "RedemptionLedgerRepository",
]
