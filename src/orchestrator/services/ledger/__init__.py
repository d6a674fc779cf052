"""Settlement ledger service."""

from orchestrator.services.ledger.schemas import (
    DepositDetail,
    DepositRecord,
    DepositStatus,
    LedgerSummary,
    RedemptionDetail,
    RedemptionRecord,
    RedemptionStatus,
)
from orchestrator.services.ledger.store import LedgerStore, normalize_request_id

__all__ = [
    "LedgerStore",
    "normalize_request_id",
    "DepositRecord",
    "DepositStatus",
    "RedemptionRecord",
    "RedemptionStatus",
    "LedgerSummary",
    "DepositDetail",
    "RedemptionDetail",
]
