"""Intent event handlers and settlement workers."""

from orchestrator.services.event_handlers.base import EventHandlerBase, HandlerStats
from orchestrator.services.event_handlers.handlers import (
    DepositIntentHandler,
    RedemptionIntentHandler,
)
from orchestrator.services.event_handlers.worker import SettlementWorker

__all__ = [
    "EventHandlerBase",
    "HandlerStats",
    "DepositIntentHandler",
    "RedemptionIntentHandler",
    "SettlementWorker",
]
