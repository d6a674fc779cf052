"""Orchestrator process and component wiring."""

from orchestrator.services.orchestrator.factory import (
    create_chain_contexts,
    create_clients,
    create_ledger,
    create_transport,
)
from orchestrator.services.orchestrator.service import Orchestrator
from orchestrator.services.orchestrator.sweeper import RetrySweeper

__all__ = [
    "Orchestrator",
    "RetrySweeper",
    "create_clients",
    "create_chain_contexts",
    "create_transport",
    "create_ledger",
]
