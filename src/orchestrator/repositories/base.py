"""Base repository for the append-only ledger tables."""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from orchestrator.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Async repository bound to one model and one session.

    Only inserts are offered. Rows are never updated or deleted, and reads
    are defined by the concrete repositories.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, values: dict[str, Any]) -> ModelType:
        """Insert a row and return it with server defaults loaded.

        @param values - Column values
        @returns The flushed model instance
        """
        db_obj = self.model(**values)
        self.session.add(db_obj)
        await self.session.flush()
        await self.session.refresh(db_obj)
        return db_obj
