"""
Base Repository

Generic CRUD helpers shared by all repositories. Subclasses set ``model``.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sourcecontrol.models.orm.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Repository base bound to one ORM model.

    Writes are flushed, never committed: the caller owns the transaction.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, **filters: Any) -> ModelT | None:
        """Get the first entity matching all keyword filters."""
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self, id: Any) -> ModelT | None:
        return await self.session.get(self.model, id)

    async def list_all(self) -> Sequence[ModelT]:
        result = await self.session.execute(select(self.model))
        return list(result.scalars().all())

    async def create(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.flush()
