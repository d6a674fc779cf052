"""Event watcher for vault intent events."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from orchestrator.infrastructure.blockchain.client import ChainClient
from orchestrator.infrastructure.blockchain.events import (
    EventParser,
    EventType,
    ParsedEvent,
    event_topic,
)
from orchestrator.services.event_listener.deduplicator import EventDeduplicator

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    """Event watcher state."""

    STOPPED = "stopped"
    BACKFILLING = "backfilling"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class WatcherConfig:
    """Configuration for an event watcher."""

    # Vault address emitting the event
    contract_address: str

    # Intent event to watch
    event_type: EventType

    # Polling interval in seconds
    poll_interval: float = 10.0

    # Blocks re-scanned on startup
    backfill_blocks: int = 5000

    # Maximum block span of one eth_getLogs call
    max_blocks_per_query: int = 9999

    # Confirmation blocks before scanning
    confirmation_blocks: int = 0


@dataclass
class WatcherStats:
    """Statistics for an event watcher."""

    state: WatcherState = WatcherState.STOPPED
    current_block: int = 0
    latest_chain_block: int = 0
    events_dispatched: int = 0
    events_skipped: int = 0
    polls: int = 0
    errors: int = 0
    last_error: str = ""
    last_event_time: datetime | None = None
    started_at: datetime | None = None
    uptime_seconds: float = 0.0


class EventWatcher:
    """Polls one intent event and feeds it to a settlement queue.

    The watermark (last fully scanned block) lives in memory only. On start
    the watcher rewinds ``backfill_blocks`` from the chain head, so events
    seen before a restart are delivered again and absorbed downstream.
    The watermark never moves backwards and only moves after a poll has
    scanned and queued its whole range.
    """

    def __init__(
        self,
        name: str,
        client: ChainClient,
        config: WatcherConfig,
        queue: "asyncio.Queue[ParsedEvent]",
        deduplicator: EventDeduplicator | None = None,
    ):
        """Initialize event watcher.

        Args:
            name: Watcher label used in logs and status output
            client: Source chain client
            config: Watcher configuration
            queue: Settlement queue for this event type
            deduplicator: Optional event deduplicator
        """
        self.name = name
        self.client = client
        self.config = config
        self.queue = queue
        self.deduplicator = deduplicator or EventDeduplicator()
        self.event_parser = EventParser()
        self.topic = event_topic(config.event_type)

        self._watermark: int | None = None
        self._stats = WatcherStats()
        self._stop_event = asyncio.Event()

    @property
    def watermark(self) -> int | None:
        """Last fully scanned block, or None before the first scan."""
        return self._watermark

    @property
    def stats(self) -> WatcherStats:
        """Get watcher statistics."""
        if self._stats.started_at:
            self._stats.uptime_seconds = (
                datetime.now(timezone.utc) - self._stats.started_at
            ).total_seconds()
        return self._stats

    async def run(self) -> None:
        """Backfill, then poll until stopped."""
        self._stop_event.clear()
        self._stats.started_at = datetime.now(timezone.utc)

        await self.backfill()
        self._stats.state = WatcherState.RUNNING

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval
                )
            except asyncio.TimeoutError:
                pass
            if self._stop_event.is_set():
                break
            await self.poll()

        self._stats.state = WatcherState.STOPPED
        logger.info(f"{self.name} watcher stopped at block {self._watermark}")

    def stop(self) -> None:
        """Ask the poll loop to exit after the current poll."""
        self._stop_event.set()

    async def backfill(self) -> int:
        """Scan the historical window once.

        Returns:
            Number of events dispatched
        """
        self._stats.state = WatcherState.BACKFILLING
        logger.info(
            f"{self.name} backfilling the last {self.config.backfill_blocks} blocks",
            extra={"watcher": self.name},
        )
        return await self.poll()

    async def poll(self) -> int:
        """Run one poll, logging and swallowing failures.

        Returns:
            Number of events dispatched (0 on failure)
        """
        self._stats.polls += 1
        try:
            return await self.poll_once()
        except Exception as e:
            self._record_error(e)
            logger.error(
                f"{self.name} poll failed, watermark stays at {self._watermark}: {e}",
                extra={"watcher": self.name, "watermark": self._watermark},
            )
            return 0

    async def poll_once(self) -> int:
        """Scan from the watermark to the safe head and queue new events.

        Returns:
            Number of events dispatched

        Raises:
            Exception: Any RPC failure; the watermark is left unchanged
        """
        latest_block = await self.client.get_block_number()
        self._stats.latest_chain_block = latest_block

        safe_block = latest_block - self.config.confirmation_blocks
        watermark = self._watermark
        if watermark is None:
            # First successful scan covers the backfill window
            watermark = max(safe_block - self.config.backfill_blocks, 0) - 1
        from_block = watermark + 1

        if from_block > safe_block:
            return 0  # Nothing new to scan

        events: list[ParsedEvent] = []
        chunk_start = from_block
        while chunk_start <= safe_block:
            chunk_end = min(chunk_start + self.config.max_blocks_per_query - 1, safe_block)
            logs = await self.client.get_logs(
                from_block=chunk_start,
                to_block=chunk_end,
                address=self.config.contract_address,
                topics=[self.topic],
            )
            events.extend(
                e
                for e in self.event_parser.parse_logs(logs)
                if e.event_type == self.config.event_type
            )
            chunk_start = chunk_end + 1

        dispatched = 0
        for event in events:
            if not self.deduplicator.check_and_mark(event.tx_hash, event.log_index):
                self._stats.events_skipped += 1
                continue
            # Blocks while the settlement queue is full
            await self.queue.put(event)
            dispatched += 1
            self._stats.events_dispatched += 1
            self._stats.last_event_time = datetime.now(timezone.utc)

        self._watermark = max(watermark, safe_block)
        self._stats.current_block = self._watermark

        if dispatched:
            logger.info(
                f"{self.name}: queued {dispatched} events from blocks {from_block}-{safe_block}",
                extra={"watcher": self.name, "events": dispatched},
            )
        return dispatched

    def _record_error(self, error: Exception) -> None:
        self._stats.errors += 1
        self._stats.last_error = str(error)

    async def get_sync_status(self) -> dict[str, Any]:
        """Get synchronization status.

        Returns:
            Sync status dictionary
        """
        stats = self.stats
        return {
            "name": self.name,
            "event": self.config.event_type.value,
            "state": stats.state.value,
            "current_block": stats.current_block,
            "latest_block": stats.latest_chain_block,
            "blocks_behind": max(stats.latest_chain_block - stats.current_block, 0),
            "events_dispatched": stats.events_dispatched,
            "events_skipped": stats.events_skipped,
            "polls": stats.polls,
            "errors": stats.errors,
            "last_error": stats.last_error,
            "uptime_seconds": stats.uptime_seconds,
            "queue_depth": self.queue.qsize(),
            "synced": stats.current_block
            >= stats.latest_chain_block - self.config.confirmation_blocks,
        }
