"""Durable settlement ledger.

The store is the single source of truth for settlement progress. Every
write appends a new entry in its own transaction; reads return the latest
entry per request. A small in-memory cache of latest records is dropped
for a request whenever that request is written.
"""

import logging
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from orchestrator.repositories.ledger import (
    DepositLedgerRepository,
    RedemptionLedgerRepository,
)
from orchestrator.services.ledger.schemas import (
    DepositRecord,
    DepositStatus,
    LedgerSummary,
    RedemptionRecord,
    RedemptionStatus,
)

logger = logging.getLogger(__name__)


def normalize_request_id(request_id: str) -> str:
    """Lowercase, 0x-prefixed request ID used as the ledger key."""
    text = request_id.lower()
    return text if text.startswith("0x") else f"0x{text}"


class LedgerStore:
    """Append-only deposit and redemption ledgers.

    Writes for one request are only ever issued by that direction's single
    worker, so appends never race with each other for the same key.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """Initialize ledger store.

        @param session_factory - Factory for creating database sessions
        """
        self._session_factory = session_factory
        self._deposit_cache: dict[str, DepositRecord] = {}
        self._redemption_cache: dict[str, RedemptionRecord] = {}

    # =========================================================================
    # Deposits
    # =========================================================================

    async def latest_deposit(self, request_id: str) -> DepositRecord | None:
        """Get the latest deposit record for a request."""
        key = normalize_request_id(request_id)
        cached = self._deposit_cache.get(key)
        if cached is not None:
            return cached

        async with self._session_factory() as session:
            entry = await DepositLedgerRepository(session).latest_for(key)
            if entry is None:
                return None
            record = DepositRecord.model_validate(entry)

        self._deposit_cache[key] = record
        return record

    async def deposit_history(self, request_id: str) -> list[DepositRecord]:
        """Get every deposit entry for a request, oldest first."""
        key = normalize_request_id(request_id)
        async with self._session_factory() as session:
            entries = await DepositLedgerRepository(session).history_for(key)
            return [DepositRecord.model_validate(e) for e in entries]

    async def record_deposit(self, record: DepositRecord) -> DepositRecord:
        """Append a deposit entry and commit it.

        @param record - Full record for the new entry
        @returns The stored record, with its write timestamp
        """
        key = normalize_request_id(record.request_id)
        self._deposit_cache.pop(key, None)

        async with self._session_factory() as session:
            entry = await DepositLedgerRepository(session).append(
                self._entry_values(record, key)
            )
            await session.commit()
            stored = DepositRecord.model_validate(entry)

        logger.info(
            f"Deposit {key} -> {stored.status.value}",
            extra={
                "request_id": key,
                "status": stored.status.value,
                "retry_count": stored.retry_count,
            },
        )
        return stored

    async def pending_deposits(self, max_retries: int, limit: int = 100) -> list[DepositRecord]:
        """Deposits that are neither deployed nor permanently failed."""
        async with self._session_factory() as session:
            entries = await DepositLedgerRepository(session).retryable_entries(
                [
                    DepositStatus.WITHDRAWN.value,
                    DepositStatus.BRIDGED.value,
                    DepositStatus.FAILED.value,
                ],
                DepositStatus.FAILED.value,
                max_retries,
                limit=limit,
            )
            return [DepositRecord.model_validate(e) for e in entries]

    async def abandoned_deposits(self, max_retries: int, limit: int = 100) -> list[DepositRecord]:
        """Deposits permanently failed and awaiting manual reconciliation."""
        async with self._session_factory() as session:
            entries = await DepositLedgerRepository(session).exhausted_entries(
                DepositStatus.FAILED.value, max_retries, limit=limit
            )
            return [DepositRecord.model_validate(e) for e in entries]

    # =========================================================================
    # Redemptions
    # =========================================================================

    async def latest_redemption(self, request_id: str) -> RedemptionRecord | None:
        """Get the latest redemption record for a request."""
        key = normalize_request_id(request_id)
        cached = self._redemption_cache.get(key)
        if cached is not None:
            return cached

        async with self._session_factory() as session:
            entry = await RedemptionLedgerRepository(session).latest_for(key)
            if entry is None:
                return None
            record = RedemptionRecord.model_validate(entry)

        self._redemption_cache[key] = record
        return record

    async def redemption_history(self, request_id: str) -> list[RedemptionRecord]:
        """Get every redemption entry for a request, oldest first."""
        key = normalize_request_id(request_id)
        async with self._session_factory() as session:
            entries = await RedemptionLedgerRepository(session).history_for(key)
            return [RedemptionRecord.model_validate(e) for e in entries]

    async def record_redemption(self, record: RedemptionRecord) -> RedemptionRecord:
        """Append a redemption entry and commit it."""
        key = normalize_request_id(record.request_id)
        self._redemption_cache.pop(key, None)

        async with self._session_factory() as session:
            entry = await RedemptionLedgerRepository(session).append(
                self._entry_values(record, key)
            )
            await session.commit()
            stored = RedemptionRecord.model_validate(entry)

        logger.info(
            f"Redemption {key} -> {stored.status.value}",
            extra={
                "request_id": key,
                "status": stored.status.value,
                "retry_count": stored.retry_count,
            },
        )
        return stored

    async def pending_redemptions(
        self, max_retries: int, limit: int = 100
    ) -> list[RedemptionRecord]:
        """Redemptions that are neither completed nor permanently failed."""
        async with self._session_factory() as session:
            entries = await RedemptionLedgerRepository(session).retryable_entries(
                [
                    RedemptionStatus.WITHDRAWN.value,
                    RedemptionStatus.BRIDGED.value,
                    RedemptionStatus.FAILED.value,
                ],
                RedemptionStatus.FAILED.value,
                max_retries,
                limit=limit,
            )
            return [RedemptionRecord.model_validate(e) for e in entries]

    async def abandoned_redemptions(
        self, max_retries: int, limit: int = 100
    ) -> list[RedemptionRecord]:
        """Redemptions permanently failed and awaiting manual reconciliation."""
        async with self._session_factory() as session:
            entries = await RedemptionLedgerRepository(session).exhausted_entries(
                RedemptionStatus.FAILED.value, max_retries, limit=limit
            )
            return [RedemptionRecord.model_validate(e) for e in entries]

    # =========================================================================
    # Reporting
    # =========================================================================

    async def summary(self) -> LedgerSummary:
        """Count requests in each ledger by latest status."""
        async with self._session_factory() as session:
            deposits = await DepositLedgerRepository(session).count_latest_by_status()
            redemptions = await RedemptionLedgerRepository(session).count_latest_by_status()
        return LedgerSummary(deposits=deposits, redemptions=redemptions)

    @staticmethod
    def _entry_values(record: DepositRecord | RedemptionRecord, key: str) -> dict[str, Any]:
        values = record.model_dump(exclude={"updated_at"})
        values["request_id"] = key
        values["status"] = record.status.value
        return values
