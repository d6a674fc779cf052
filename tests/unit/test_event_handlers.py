"""Tests for intent handlers, settlement workers and the retry sweep."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from orchestrator.infrastructure.blockchain.events import EventType, ParsedEvent
from orchestrator.services.event_handlers.handlers import (
    DepositIntentHandler,
    RedemptionIntentHandler,
)
from orchestrator.services.event_handlers.worker import SettlementWorker
from orchestrator.services.ledger.schemas import (
    DepositRecord,
    DepositStatus,
    RedemptionRecord,
    RedemptionStatus,
)
from orchestrator.services.orchestrator.sweeper import RetrySweeper

USER = "0x6666666666666666666666666666666666666666"


def create_test_event(event_type: EventType, args: dict, tx_hash: str = "0xabc") -> ParsedEvent:
    """Create a test event."""
    return ParsedEvent(
        event_type=event_type,
        tx_hash=tx_hash,
        block_number=100,
        log_index=0,
        block_timestamp=datetime.now(timezone.utc),
        contract_address="0x2222222222222222222222222222222222222222",
        args=args,
        raw_data={},
    )


def deposit_event(request_id: str = "0xaa") -> ParsedEvent:
    return create_test_event(
        EventType.DEPOSIT_INTENT,
        {"user": USER, "amount": 5_000000, "request_id": request_id},
    )


def pending_deposit(request_id: str = "0xaa") -> DepositRecord:
    return DepositRecord(
        request_id=request_id,
        user=USER,
        amount=5_000000,
        source_tx_hash="0xabc",
        status=DepositStatus.FAILED,
        retry_count=1,
    )


class TestIntentHandlers:
    """Tests for the deposit and redemption handlers."""

    @pytest.mark.asyncio
    async def test_deposit_handler_runs_pipeline(self):
        pipeline = MagicMock()
        pipeline.process = AsyncMock()
        handler = DepositIntentHandler(pipeline)

        await handler(deposit_event())

        pipeline.process.assert_awaited_once_with(
            user=USER, amount=5_000000, request_id="0xaa", source_tx_hash="0xabc"
        )
        assert handler.stats.events_processed == 1
        assert handler.stats.event_type == EventType.DEPOSIT_INTENT

    @pytest.mark.asyncio
    async def test_redemption_handler_runs_pipeline(self):
        pipeline = MagicMock()
        pipeline.process = AsyncMock()
        handler = RedemptionIntentHandler(pipeline)

        await handler(
            create_test_event(
                EventType.REDEMPTION_INTENT,
                {"request_id": "0xbb", "amount": 7},
                tx_hash="0xdef",
            )
        )

        pipeline.process.assert_awaited_once_with(
            request_id="0xbb", amount=7, request_tx_hash="0xdef"
        )

    @pytest.mark.asyncio
    async def test_handler_failure_is_counted_and_raised(self):
        pipeline = MagicMock()
        pipeline.process = AsyncMock(side_effect=RuntimeError("ledger unavailable"))
        handler = DepositIntentHandler(pipeline)

        with pytest.raises(RuntimeError):
            await handler(deposit_event())

        assert handler.stats.events_failed == 1
        assert handler.stats.last_error == "ledger unavailable"

    @pytest.mark.asyncio
    async def test_retry_resumes_record(self):
        pipeline = MagicMock()
        pipeline.resume = AsyncMock()
        handler = DepositIntentHandler(pipeline)
        record = pending_deposit()

        await handler.retry(record)

        pipeline.resume.assert_awaited_once_with(record)
        assert handler.stats.retries_processed == 1


class TestSettlementWorker:
    """Tests for SettlementWorker."""

    def make_worker(self, handler):
        self.queue: asyncio.Queue = asyncio.Queue()
        return SettlementWorker("deposits", self.queue, handler, idle_timeout=0.01)

    @pytest.mark.asyncio
    async def test_events_and_retries_are_routed(self):
        """Test events go to the handler and ledger records to retry()."""
        pipeline = MagicMock()
        pipeline.process = AsyncMock()
        pipeline.resume = AsyncMock()
        worker = self.make_worker(DepositIntentHandler(pipeline))
        record = pending_deposit("0xbb")

        await worker.process(deposit_event())
        await worker.process(record)

        pipeline.process.assert_awaited_once()
        pipeline.resume.assert_awaited_once_with(record)

    @pytest.mark.asyncio
    async def test_processes_sequentially(self):
        """Test one item is fully settled before the next starts."""
        order = []

        async def process(**kwargs):
            order.append(("start", kwargs["request_id"]))
            await asyncio.sleep(0.01)
            order.append(("end", kwargs["request_id"]))

        pipeline = MagicMock()
        pipeline.process = process
        worker = self.make_worker(DepositIntentHandler(pipeline))
        await self.queue.put(deposit_event("0x01"))
        await self.queue.put(deposit_event("0x02"))

        task = asyncio.create_task(worker.run())
        await asyncio.wait_for(self.queue.join(), timeout=1)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert order == [
            ("start", "0x01"),
            ("end", "0x01"),
            ("start", "0x02"),
            ("end", "0x02"),
        ]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_worker(self):
        """Test an unexpected error is logged and the next item still runs."""
        pipeline = MagicMock()
        pipeline.process = AsyncMock(side_effect=[RuntimeError("boom"), None])
        handler = DepositIntentHandler(pipeline)
        worker = self.make_worker(handler)
        await self.queue.put(deposit_event("0x01"))
        await self.queue.put(deposit_event("0x02"))

        task = asyncio.create_task(worker.run())
        await asyncio.wait_for(self.queue.join(), timeout=1)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert pipeline.process.await_count == 2
        assert handler.stats.events_failed == 1
        assert handler.stats.events_processed == 1


class TestRetrySweeper:
    """Tests for RetrySweeper."""

    def make_sweeper(self, deposits=None, redemptions=None, interval: float = 300):
        self.ledger = MagicMock()
        self.ledger.pending_deposits = AsyncMock(return_value=deposits or [])
        self.ledger.pending_redemptions = AsyncMock(return_value=redemptions or [])
        self.deposit_queue: asyncio.Queue = asyncio.Queue()
        self.redemption_queue: asyncio.Queue = asyncio.Queue()
        return RetrySweeper(
            ledger=self.ledger,
            deposit_queue=self.deposit_queue,
            redemption_queue=self.redemption_queue,
            max_retries=3,
            interval=interval,
        )

    @pytest.mark.asyncio
    async def test_sweep_queues_pending(self):
        redemption = RedemptionRecord(
            request_id="0xcc",
            amount=1,
            request_tx_hash="0x9",
            status=RedemptionStatus.BRIDGED,
        )
        sweeper = self.make_sweeper(
            deposits=[pending_deposit("0x01"), pending_deposit("0x02")],
            redemptions=[redemption],
        )

        assert await sweeper.sweep_once() == 3
        assert self.deposit_queue.qsize() == 2
        assert self.redemption_queue.get_nowait() is redemption
        self.ledger.pending_deposits.assert_awaited_once_with(3)
        assert sweeper.sweeps == 1

    @pytest.mark.asyncio
    async def test_busy_queue_is_not_swept(self):
        """Test a direction with queued work is left alone."""
        sweeper = self.make_sweeper(deposits=[pending_deposit()])
        await self.deposit_queue.put(deposit_event())

        assert await sweeper.sweep_once() == 0
        self.ledger.pending_deposits.assert_not_awaited()
        self.ledger.pending_redemptions.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sweep_past_many_abandoned(self, ledger):
        """Test a retryable deposit is queued behind a full page of abandoned ones."""
        for i in range(100):
            await ledger.record_deposit(
                pending_deposit(f"0x{i:04x}").evolve(retry_count=3)
            )
        await ledger.record_deposit(pending_deposit("0xffff"))
        deposit_queue: asyncio.Queue = asyncio.Queue()
        sweeper = RetrySweeper(
            ledger=ledger,
            deposit_queue=deposit_queue,
            redemption_queue=asyncio.Queue(),
            max_retries=3,
        )

        assert await sweeper.sweep_once() == 1
        assert deposit_queue.get_nowait().request_id == "0xffff"

    @pytest.mark.asyncio
    async def test_disabled_sweep_returns(self):
        sweeper = self.make_sweeper(interval=0)

        await asyncio.wait_for(sweeper.run(), timeout=1)

        assert sweeper.sweeps == 0

    @pytest.mark.asyncio
    async def test_run_until_stopped(self):
        sweeper = self.make_sweeper(interval=0.01)

        task = asyncio.create_task(sweeper.run())
        await asyncio.sleep(0.05)
        sweeper.stop()
        await asyncio.wait_for(task, timeout=1)

        assert sweeper.sweeps >= 1
