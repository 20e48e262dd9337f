"""Database utilities for the Rolodex service."""
from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from rolodex.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine: AsyncEngine = create_async_engine(settings.async_database_url, future=True)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a SQLAlchemy async session."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit the work done inside the block, or roll all of it back.

    Any exception raised inside the block is re-raised unchanged after the
    rollback, so callers see the original failure.
    """

    try:
        yield session
        await session.commit()
    except BaseException as exc:
        await session.rollback()
        logger.warning(
            "Transaction rolled back",
            extra={"error_type": type(exc).__name__},
        )
        raise
