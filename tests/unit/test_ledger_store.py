"""Tests for the settlement ledger."""

import pytest

from orchestrator.services.ledger.schemas import (
    DepositRecord,
    DepositStatus,
    RedemptionRecord,
    RedemptionStatus,
)
from orchestrator.services.ledger.store import normalize_request_id

USER = "0x6666666666666666666666666666666666666666"


def deposit(request_id: str = "0xaa", **overrides) -> DepositRecord:
    values = dict(
        request_id=request_id,
        user=USER,
        amount=5_000000,
        source_tx_hash="0x1",
        status=DepositStatus.WITHDRAWN,
    )
    values.update(overrides)
    return DepositRecord(**values)


def redemption(request_id: str = "0xbb", **overrides) -> RedemptionRecord:
    values = dict(
        request_id=request_id,
        amount=1_000000,
        request_tx_hash="0x9",
        status=RedemptionStatus.WITHDRAWN,
    )
    values.update(overrides)
    return RedemptionRecord(**values)


class TestNormalizeRequestId:
    """Tests for request ID normalisation."""

    def test_lowercases(self):
        assert normalize_request_id("0xAbCd") == "0xabcd"

    def test_adds_prefix(self):
        assert normalize_request_id("ABCD") == "0xabcd"


class TestLedgerRecords:
    """Tests for record helpers."""

    def test_evolve_clears_timestamp(self):
        """Test evolve copies fields and drops the write timestamp."""
        from datetime import datetime, timezone

        record = deposit(updated_at=datetime.now(timezone.utc))
        evolved = record.evolve(status=DepositStatus.BRIDGED, bridge_tx_hash="0x2")

        assert evolved.status == DepositStatus.BRIDGED
        assert evolved.bridge_tx_hash == "0x2"
        assert evolved.source_tx_hash == "0x1"
        assert evolved.updated_at is None
        assert record.status == DepositStatus.WITHDRAWN

    def test_is_finished(self):
        """Test finished means terminal success or retries exhausted."""
        assert deposit(status=DepositStatus.DEPLOYED).is_finished(3)
        assert deposit(status=DepositStatus.FAILED, retry_count=3).is_finished(3)
        assert not deposit(status=DepositStatus.FAILED, retry_count=2).is_finished(3)
        assert not deposit(status=DepositStatus.BRIDGED).is_finished(3)
        assert redemption(status=RedemptionStatus.COMPLETED).is_finished(3)
        assert not redemption(status=RedemptionStatus.FAILED, retry_count=1).is_finished(3)


class TestLedgerStore:
    """Tests for LedgerStore against SQLite."""

    @pytest.mark.asyncio
    async def test_missing_request(self, ledger):
        """Test unknown requests have no record and no history."""
        assert await ledger.latest_deposit("0xaa") is None
        assert await ledger.deposit_history("0xaa") == []
        assert await ledger.latest_redemption("0xaa") is None

    @pytest.mark.asyncio
    async def test_record_and_read_latest(self, ledger):
        """Test the last written entry is the latest record."""
        await ledger.record_deposit(deposit(withdraw_tx_hash="0x1"))
        stored = await ledger.record_deposit(
            deposit(status=DepositStatus.BRIDGED, withdraw_tx_hash="0x1", bridge_tx_hash="0x2")
        )

        assert stored.updated_at is not None

        latest = await ledger.latest_deposit("0xaa")
        assert latest.status == DepositStatus.BRIDGED
        assert latest.bridge_tx_hash == "0x2"
        assert latest.amount == 5_000000

    @pytest.mark.asyncio
    async def test_history_keeps_every_attempt(self, ledger):
        """Test entries are appended, never overwritten."""
        await ledger.record_deposit(deposit())
        await ledger.record_deposit(deposit(status=DepositStatus.FAILED, retry_count=1))
        await ledger.record_deposit(deposit(status=DepositStatus.BRIDGED, retry_count=1))

        history = await ledger.deposit_history("0xaa")

        assert [e.status for e in history] == [
            DepositStatus.WITHDRAWN,
            DepositStatus.FAILED,
            DepositStatus.BRIDGED,
        ]

    @pytest.mark.asyncio
    async def test_request_ids_are_case_insensitive(self, ledger):
        """Test reads and writes agree on the normalised key."""
        await ledger.record_deposit(deposit(request_id="0xAA"))

        latest = await ledger.latest_deposit("AA")
        assert latest is not None
        assert latest.request_id == "0xaa"

    @pytest.mark.asyncio
    async def test_cache_dropped_on_write(self, ledger):
        """Test a write is visible to the next read of the same request."""
        await ledger.record_deposit(deposit())
        assert (await ledger.latest_deposit("0xaa")).status == DepositStatus.WITHDRAWN

        await ledger.record_deposit(deposit(status=DepositStatus.DEPLOYED))
        assert (await ledger.latest_deposit("0xaa")).status == DepositStatus.DEPLOYED

    @pytest.mark.asyncio
    async def test_directions_are_separate(self, ledger):
        """Test a request ID can exist in both ledgers independently."""
        await ledger.record_deposit(deposit(request_id="0xcc"))
        await ledger.record_redemption(redemption(request_id="0xcc"))

        assert (await ledger.latest_deposit("0xcc")).status == DepositStatus.WITHDRAWN
        assert (await ledger.latest_redemption("0xcc")).status == RedemptionStatus.WITHDRAWN
        assert len(await ledger.redemption_history("0xcc")) == 1

    @pytest.mark.asyncio
    async def test_pending_and_abandoned(self, ledger):
        """Test pending excludes finished requests and abandoned holds exhausted ones."""
        await ledger.record_deposit(deposit(request_id="0x01"))
        await ledger.record_deposit(deposit(request_id="0x02", status=DepositStatus.DEPLOYED))
        await ledger.record_deposit(
            deposit(request_id="0x03", status=DepositStatus.FAILED, retry_count=1)
        )
        await ledger.record_deposit(
            deposit(request_id="0x04", status=DepositStatus.FAILED, retry_count=3)
        )
        # Latest entry decides: 0x05 failed first, then progressed
        await ledger.record_deposit(
            deposit(request_id="0x05", status=DepositStatus.FAILED, retry_count=3)
        )
        await ledger.record_deposit(deposit(request_id="0x05", status=DepositStatus.DEPLOYED))

        pending = await ledger.pending_deposits(max_retries=3)
        abandoned = await ledger.abandoned_deposits(max_retries=3)

        assert sorted(r.request_id for r in pending) == ["0x01", "0x03"]
        assert [r.request_id for r in abandoned] == ["0x04"]

    @pytest.mark.asyncio
    async def test_abandoned_rows_do_not_crowd_out_pending(self, ledger):
        """Test the limit applies after abandoned requests are excluded."""
        for i in range(5):
            await ledger.record_deposit(
                deposit(request_id=f"0x{i:02x}", status=DepositStatus.FAILED, retry_count=3)
            )
        await ledger.record_deposit(
            deposit(request_id="0xff", status=DepositStatus.FAILED, retry_count=1)
        )

        pending = await ledger.pending_deposits(max_retries=3, limit=2)
        abandoned = await ledger.abandoned_deposits(max_retries=3, limit=2)

        assert [r.request_id for r in pending] == ["0xff"]
        assert [r.request_id for r in abandoned] == ["0x00", "0x01"]

    @pytest.mark.asyncio
    async def test_abandoned_does_not_hide_later_exhausted(self, ledger):
        """Test abandoned listing skips retryable failures before applying the limit."""
        for i in range(3):
            await ledger.record_redemption(
                redemption(request_id=f"0x{i:02x}", status=RedemptionStatus.FAILED, retry_count=1)
            )
        await ledger.record_redemption(
            redemption(request_id="0xee", status=RedemptionStatus.FAILED, retry_count=3)
        )

        abandoned = await ledger.abandoned_redemptions(max_retries=3, limit=1)
        pending = await ledger.pending_redemptions(max_retries=3, limit=10)

        assert [r.request_id for r in abandoned] == ["0xee"]
        assert len(pending) == 3

    @pytest.mark.asyncio
    async def test_pending_redemptions(self, ledger):
        """Test pending redemptions follow the same rules."""
        await ledger.record_redemption(redemption(request_id="0x01"))
        await ledger.record_redemption(
            redemption(request_id="0x02", status=RedemptionStatus.COMPLETED)
        )
        await ledger.record_redemption(
            redemption(request_id="0x03", status=RedemptionStatus.FAILED, retry_count=3)
        )

        pending = await ledger.pending_redemptions(max_retries=3)
        abandoned = await ledger.abandoned_redemptions(max_retries=3)

        assert [r.request_id for r in pending] == ["0x01"]
        assert [r.request_id for r in abandoned] == ["0x03"]

    @pytest.mark.asyncio
    async def test_summary_counts_latest_status(self, ledger):
        """Test summary counts each request once by its latest status."""
        await ledger.record_deposit(deposit(request_id="0x01"))
        await ledger.record_deposit(deposit(request_id="0x01", status=DepositStatus.DEPLOYED))
        await ledger.record_deposit(deposit(request_id="0x02"))
        await ledger.record_redemption(redemption(request_id="0x03"))

        summary = await ledger.summary()

        assert summary.deposits == {"deployed": 1, "withdrawn": 1}
        assert summary.redemptions == {"withdrawn": 1}

