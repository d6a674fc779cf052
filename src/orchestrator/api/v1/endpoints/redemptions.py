"""Redemption ledger endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from orchestrator.api.v1.dependencies import get_ledger, get_max_retries
from orchestrator.services.ledger import LedgerStore, RedemptionDetail, RedemptionRecord

router = APIRouter(prefix="/redemptions", tags=["Redemptions"])


@router.get("", response_model=list[RedemptionRecord])
async def list_redemptions(
    state: Literal["pending", "abandoned"] = Query(
        "pending", description="Unfinished requests or permanently failed ones"
    ),
    limit: int = Query(100, ge=1, le=1000),
    ledger: LedgerStore = Depends(get_ledger),
    max_retries: int = Depends(get_max_retries),
) -> list[RedemptionRecord]:
    """List redemptions that still need work or manual reconciliation."""
    if state == "abandoned":
        return await ledger.abandoned_redemptions(max_retries, limit=limit)
    return await ledger.pending_redemptions(max_retries, limit=limit)


@router.get("/{request_id}", response_model=RedemptionDetail)
async def get_redemption(
    request_id: str,
    ledger: LedgerStore = Depends(get_ledger),
) -> RedemptionDetail:
    """Get the latest redemption record and its history.

    Args:
        request_id: Vault request ID (0x bytes32)

    Raises:
        HTTPException: 404 if the request is not in the ledger
    """
    record = await ledger.latest_redemption(request_id)
    if record is None:
        raise HTTPException(404, f"Redemption {request_id} not found")
    history = await ledger.redemption_history(request_id)
    return RedemptionDetail(record=record, history=history)
