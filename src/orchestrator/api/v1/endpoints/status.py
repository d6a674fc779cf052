"""Orchestrator status endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from orchestrator.api.v1.dependencies import get_orchestrator

router = APIRouter(tags=["Status"])


@router.get("/status")
async def get_status(orchestrator: Any = Depends(get_orchestrator)) -> dict[str, Any]:
    """Get watcher sync state, worker queues and ledger counts.

    Returns:
        Status snapshot of the running orchestrator
    """
    return await orchestrator.get_status()
