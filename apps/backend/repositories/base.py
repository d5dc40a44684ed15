"""Shared repository plumbing."""

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from exceptions import InternalError
from observability.logging import get_logger

logger = get_logger(__name__)


class Repository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self, failure_message: str) -> None:
        """Commit, translating storage failures into ``InternalError``."""
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"[Repository] {failure_message}: {e}")
            raise InternalError(failure_message) from e

    async def save(self, row, failure_message: str):
        self.session.add(row)
        await self.commit(failure_message)
        await self.session.refresh(row)
        return row
