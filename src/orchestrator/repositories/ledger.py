"""Ledger repositories.

Queries over the append-only deposit and redemption ledgers. "Latest"
always means the entry with the highest id for a request.
"""

from typing import Any, Sequence, TypeVar

from sqlalchemy import and_, func, or_, select

from orchestrator.models.ledger import DepositLedgerEntry, RedemptionLedgerEntry
from orchestrator.repositories.base import BaseRepository

EntryType = TypeVar("EntryType", DepositLedgerEntry, RedemptionLedgerEntry)


class LedgerRepository(BaseRepository[EntryType]):
    """Shared queries for both ledger tables."""

    async def latest_for(self, request_id: str) -> EntryType | None:
        """Get the most recent entry for a request.

        @param request_id - Request identifier (0x-prefixed bytes32)
        @returns Latest entry or None if the request was never seen
        """
        stmt = (
            select(self.model)
            .where(self.model.request_id == request_id)
            .order_by(self.model.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def history_for(self, request_id: str) -> Sequence[EntryType]:
        """Get every entry for a request, oldest first.

        @param request_id - Request identifier
        @returns Entries in write order
        """
        stmt = (
            select(self.model)
            .where(self.model.request_id == request_id)
            .order_by(self.model.id.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def append(self, values: dict[str, Any]) -> EntryType:
        """Append a new entry. Existing rows are never touched.

        @param values - Column values for the new entry
        @returns The inserted entry
        """
        return await self.create(values)

    async def latest_entries(self, *where: Any, limit: int = 100) -> Sequence[EntryType]:
        """Get the latest entry of every request matching ``where``.

        Conditions apply to the latest entry only and are evaluated before
        ``limit``.

        @param where - SQLAlchemy conditions on the latest entry
        @param limit - Maximum number of requests
        @returns Latest entries, oldest request first
        """
        latest_ids = (
            select(func.max(self.model.id))
            .group_by(self.model.request_id)
        )
        stmt = (
            select(self.model)
            .where(self.model.id.in_(latest_ids), *where)
            .order_by(self.model.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def retryable_entries(
        self, open_statuses: list[str], failed_status: str, max_retries: int, limit: int = 100
    ) -> Sequence[EntryType]:
        """Latest entries still due for another attempt.

        @param open_statuses - Non-final statuses, including ``failed_status``
        @param failed_status - Status written on a failed attempt
        @param max_retries - Attempts after which a failed request is abandoned
        @param limit - Maximum number of requests
        """
        return await self.latest_entries(
            self.model.status.in_(open_statuses),
            or_(
                self.model.status != failed_status,
                self.model.retry_count < max_retries,
            ),
            limit=limit,
        )

    async def exhausted_entries(
        self, failed_status: str, max_retries: int, limit: int = 100
    ) -> Sequence[EntryType]:
        """Latest entries that failed for good."""
        return await self.latest_entries(
            and_(
                self.model.status == failed_status,
                self.model.retry_count >= max_retries,
            ),
            limit=limit,
        )

    async def count_latest_by_status(self) -> dict[str, int]:
        """Count requests grouped by their latest status."""
        latest_ids = (
            select(func.max(self.model.id))
            .group_by(self.model.request_id)
        )
        stmt = (
            select(self.model.status, func.count())
            .where(self.model.id.in_(latest_ids))
            .group_by(self.model.status)
        )
        result = await self.session.execute(stmt)
        return {status: count for status, count in result.all()}


class DepositLedgerRepository(LedgerRepository[DepositLedgerEntry]):
    """Repository for deposit ledger entries."""

    model = DepositLedgerEntry


class RedemptionLedgerRepository(LedgerRepository[RedemptionLedgerEntry]):
    """Repository for redemption ledger entries."""

    model = RedemptionLedgerEntry
