"""Intent event handlers.

Each handler turns a decoded vault event into a pipeline invocation. The
pipelines record every outcome in the ledger themselves.
"""

import logging

from orchestrator.infrastructure.blockchain.events import EventType, ParsedEvent
from orchestrator.services.event_handlers.base import EventHandlerBase
from orchestrator.services.ledger.schemas import DepositRecord, RedemptionRecord
from orchestrator.services.settlement.deposit import DepositPipeline
from orchestrator.services.settlement.redemption import RedemptionPipeline

logger = logging.getLogger(__name__)


class DepositIntentHandler(EventHandlerBase):
    """Handler for BridgeToDestinationRequested events."""

    def __init__(self, pipeline: DepositPipeline):
        super().__init__(EventType.DEPOSIT_INTENT)
        self.pipeline = pipeline

    async def handle(self, event: ParsedEvent) -> None:
        """Run the deposit pipeline for the event."""
        args = event.args
        logger.info(
            "Processing deposit intent",
            extra={
                "tx_hash": event.tx_hash,
                "request_id": args["request_id"],
                "user": args["user"],
                "amount": str(args["amount"]),
            },
        )
        await self.pipeline.process(
            user=args["user"],
            amount=args["amount"],
            request_id=args["request_id"],
            source_tx_hash=event.tx_hash,
        )

    async def retry(self, record: DepositRecord) -> None:
        """Resume an unfinished deposit picked up by the retry sweep."""
        await self.pipeline.resume(record)
        self.stats.retries_processed += 1


class RedemptionIntentHandler(EventHandlerBase):
    """Handler for BridgeFromDestinationRequested events."""

    def __init__(self, pipeline: RedemptionPipeline):
        super().__init__(EventType.REDEMPTION_INTENT)
        self.pipeline = pipeline

    async def handle(self, event: ParsedEvent) -> None:
        """Run the redemption pipeline for the event."""
        args = event.args
        logger.info(
            "Processing redemption intent",
            extra={
                "tx_hash": event.tx_hash,
                "request_id": args["request_id"],
                "amount": str(args["amount"]),
            },
        )
        await self.pipeline.process(
            request_id=args["request_id"],
            amount=args["amount"],
            request_tx_hash=event.tx_hash,
        )

    async def retry(self, record: RedemptionRecord) -> None:
        """Resume an unfinished redemption picked up by the retry sweep."""
        await self.pipeline.resume(record)
        self.stats.retries_processed += 1
