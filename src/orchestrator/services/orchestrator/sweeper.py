"""Periodic retry of unfinished settlements."""

import asyncio
import logging
from typing import Any

from orchestrator.services.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


class RetrySweeper:
    """Re-queues ledger records that are neither finished nor abandoned.

    Records go through the same queues as fresh events, so each direction
    still has a single consumer. A direction is only swept while its queue
    is empty, which keeps a slow pipeline from being queued twice.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        deposit_queue: "asyncio.Queue[Any]",
        redemption_queue: "asyncio.Queue[Any]",
        max_retries: int,
        interval: float = 300.0,
    ):
        self.ledger = ledger
        self.deposit_queue = deposit_queue
        self.redemption_queue = redemption_queue
        self.max_retries = max_retries
        self.interval = interval
        self.sweeps = 0
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """Sweep every ``interval`` seconds until stopped."""
        if self.interval <= 0:
            logger.info("Retry sweep disabled")
            return

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                break
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"Retry sweep failed: {e}")

    async def sweep_once(self) -> int:
        """Queue unfinished requests once.

        Returns:
            Number of requests queued
        """
        self.sweeps += 1
        queued = 0

        if self.deposit_queue.empty():
            for record in await self.ledger.pending_deposits(self.max_retries):
                await self.deposit_queue.put(record)
                queued += 1

        if self.redemption_queue.empty():
            for record in await self.ledger.pending_redemptions(self.max_retries):
                await self.redemption_queue.put(record)
                queued += 1

        if queued:
            logger.info(f"Retry sweep queued {queued} unfinished settlements")
        return queued
