"""
Database Engine and Sessions

Async SQLAlchemy engine/session factory built from settings.
"""

import logging
from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sourcecontrol.config import get_settings
from sourcecontrol.models.orm.base import Base

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> AsyncEngine:
    """Get the process-wide async engine."""
    settings = get_settings()
    return create_async_engine(settings.database_url, echo=settings.debug)


def get_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the given (or default) engine."""
    return async_sessionmaker(engine or get_engine(), expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session, rolling back on error.

    Usage:
        async for db in get_db():
            service = SourceControlService(db, session)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests; production uses migrations)."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Created source control tables")
