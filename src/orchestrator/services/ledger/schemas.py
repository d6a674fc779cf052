"""Ledger record schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DepositStatus(str, Enum):
    """Deposit settlement status, in step order."""

    WITHDRAWN = "withdrawn"
    BRIDGED = "bridged"
    DEPLOYED = "deployed"
    FAILED = "failed"


class RedemptionStatus(str, Enum):
    """Redemption settlement status, in step order."""

    WITHDRAWN = "withdrawn"
    BRIDGED = "bridged"
    COMPLETED = "completed"
    FAILED = "failed"


class LedgerRecord(BaseModel):
    """Fields shared by both ledgers."""

    model_config = ConfigDict(from_attributes=True)

    request_id: str = Field(..., description="On-chain request ID (0x bytes32)")
    amount: int = Field(..., ge=0, description="Amount in asset base units")
    retry_count: int = Field(default=0, ge=0, description="Failed attempts so far")
    last_error: str | None = Field(None, description="Error of the last failed attempt")
    withdraw_tx_hash: str | None = Field(None, description="Custody withdrawal tx")
    bridge_tx_hash: str | None = Field(None, description="Bridge mint tx")
    confirm_tx_hash: str | None = Field(None, description="Vault bridge confirmation tx")
    updated_at: datetime | None = Field(None, description="Time the entry was written")

    def evolve(self, **changes):
        """Copy with changes applied, for the next ledger entry."""
        return self.model_copy(update={**changes, "updated_at": None})


class DepositRecord(LedgerRecord):
    """Inbound settlement (source chain -> destination chain)."""

    user: str = Field(..., description="Depositor address")
    source_tx_hash: str = Field(..., description="Source chain tx that emitted the intent")
    fund_tx_hash: str | None = Field(None, description="USDC transfer into the treasury")
    destination_tx_hash: str | None = Field(None, description="Treasury deployment tx")
    status: DepositStatus = Field(..., description="Settlement status")

    def is_finished(self, max_retries: int) -> bool:
        """Deployed, or failed with no retries left."""
        if self.status == DepositStatus.DEPLOYED:
            return True
        return self.status == DepositStatus.FAILED and self.retry_count >= max_retries


class RedemptionRecord(LedgerRecord):
    """Outbound settlement (destination chain -> source chain)."""

    request_tx_hash: str = Field(..., description="Source chain tx that emitted the intent")
    return_tx_hash: str | None = Field(None, description="Transfer of funds back into the vault")
    complete_tx_hash: str | None = Field(None, description="Vault completeRedemption tx")
    status: RedemptionStatus = Field(..., description="Settlement status")

    def is_finished(self, max_retries: int) -> bool:
        """Completed, or failed with no retries left."""
        if self.status == RedemptionStatus.COMPLETED:
            return True
        return self.status == RedemptionStatus.FAILED and self.retry_count >= max_retries


class LedgerSummary(BaseModel):
    """Request counts by latest status."""

    deposits: dict[str, int] = Field(default_factory=dict)
    redemptions: dict[str, int] = Field(default_factory=dict)


class DepositDetail(BaseModel):
    """Latest deposit record with its full ledger history."""

    record: DepositRecord
    history: list[DepositRecord]


class RedemptionDetail(BaseModel):
    """Latest redemption record with its full ledger history."""

    record: RedemptionRecord
    history: list[RedemptionRecord]
