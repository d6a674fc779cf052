"""Request dependencies for the status API."""

from typing import Any

from fastapi import HTTPException, Request

from orchestrator.services.ledger.store import LedgerStore


def get_orchestrator(request: Request) -> Any:
    """Orchestrator the app was created for."""
    return request.app.state.orchestrator


def get_ledger(request: Request) -> LedgerStore:
    """Ledger of the running orchestrator."""
    ledger = getattr(request.app.state.orchestrator, "ledger", None)
    if ledger is None:
        raise HTTPException(503, "Ledger not ready")
    return ledger


def get_max_retries(request: Request) -> int:
    return request.app.state.settings.max_retries
