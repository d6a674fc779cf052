"""Deposit ledger endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from orchestrator.api.v1.dependencies import get_ledger, get_max_retries
from orchestrator.services.ledger import DepositDetail, DepositRecord, LedgerStore

router = APIRouter(prefix="/deposits", tags=["Deposits"])


@router.get("", response_model=list[DepositRecord])
async def list_deposits(
    state: Literal["pending", "abandoned"] = Query(
        "pending", description="Unfinished requests or permanently failed ones"
    ),
    limit: int = Query(100, ge=1, le=1000),
    ledger: LedgerStore = Depends(get_ledger),
    max_retries: int = Depends(get_max_retries),
) -> list[DepositRecord]:
    """List deposits that still need work or manual reconciliation."""
    if state == "abandoned":
        return await ledger.abandoned_deposits(max_retries, limit=limit)
    return await ledger.pending_deposits(max_retries, limit=limit)


@router.get("/{request_id}", response_model=DepositDetail)
async def get_deposit(
    request_id: str,
    ledger: LedgerStore = Depends(get_ledger),
) -> DepositDetail:
    """Get the latest deposit record and its history.

    Args:
        request_id: Vault request ID (0x bytes32)

    Raises:
        HTTPException: 404 if the request is not in the ledger
    """
    record = await ledger.latest_deposit(request_id)
    if record is None:
        raise HTTPException(404, f"Deposit {request_id} not found")
    history = await ledger.deposit_history(request_id)
    return DepositDetail(record=record, history=history)
