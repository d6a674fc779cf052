"""Sequential settlement worker.

One worker consumes one direction's queue, so requests of that direction
are settled strictly one after another.
"""

import asyncio
import logging
from typing import Any

from orchestrator.infrastructure.blockchain.events import ParsedEvent
from orchestrator.services.event_handlers.handlers import (
    DepositIntentHandler,
    RedemptionIntentHandler,
)

logger = logging.getLogger(__name__)


class SettlementWorker:
    """Consumes intent events and retry jobs for one direction."""

    def __init__(
        self,
        name: str,
        queue: "asyncio.Queue[Any]",
        handler: DepositIntentHandler | RedemptionIntentHandler,
        idle_timeout: float = 1.0,
    ):
        """Initialize worker.

        Args:
            name: Worker label used in logs
            queue: Queue of ParsedEvent or ledger records to retry
            handler: Handler for this direction
            idle_timeout: Seconds between stop checks while the queue is empty
        """
        self.name = name
        self.queue = queue
        self.handler = handler
        self.idle_timeout = idle_timeout
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        """Exit after the item currently being settled."""
        self._stop_event.set()

    async def run(self) -> None:
        """Consume the queue until stopped."""
        logger.info(f"{self.name} worker started")
        while not self._stop_event.is_set():
            try:
                item = await asyncio.wait_for(self.queue.get(), timeout=self.idle_timeout)
            except asyncio.TimeoutError:
                continue

            try:
                await self.process(item)
            finally:
                self.queue.task_done()

        logger.info(f"{self.name} worker stopped ({self.queue.qsize()} items left queued)")

    async def process(self, item: Any) -> None:
        """Settle one queued item; failures are logged, never raised."""
        try:
            if isinstance(item, ParsedEvent):
                await self.handler(item)
            else:
                await self.handler.retry(item)
        except Exception as e:
            logger.exception(
                f"{self.name} worker failed on {getattr(item, 'tx_hash', None) or item}: {e}"
            )
