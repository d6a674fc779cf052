"""Deposit and redemption settlement pipelines."""

from orchestrator.services.settlement.base import (
    ChainContext,
    SettlementPipeline,
    SettlementPolicy,
)
from orchestrator.services.settlement.classifier import (
    FailureClass,
    FailureDecision,
    classify_failure,
    decide,
)
from orchestrator.services.settlement.deposit import DepositPipeline
from orchestrator.services.settlement.redemption import RedemptionPipeline

__all__ = [
    # Pipelines
    "SettlementPipeline",
    "DepositPipeline",
    "RedemptionPipeline",
    "ChainContext",
    "SettlementPolicy",
    # Classifier
    "FailureClass",
    "FailureDecision",
    "classify_failure",
    "decide",
]
