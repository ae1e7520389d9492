"""Async SQLAlchemy engine, session factory and unit-of-work scope.

With DATABASE_URL set (postgresql+asyncpg://...), requests get Pg-backed
repositories sharing one session per request.  Without it, `engine` and
`async_session_factory` stay None and orderdesk.api.dependencies hands out
the in-memory repositories instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from orderdesk.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the onboarding tables in orderdesk.db.tables."""


engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev and SETTINGS.log_level == "debug",
        pool_size=SETTINGS.db_pool_size,
        max_overflow=SETTINGS.db_max_overflow,
        # Status checks follow idle periods; drop connections the server closed.
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """One transaction: commit when the block exits cleanly, else roll back.

    Organization creation writes the organization and the creator's
    membership; accepting an invitation writes the invitation status and
    the invitee's membership.  Both pairs land in the same scope.
    """
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured, no database session available")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db() -> AsyncGenerator[None, None]:
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield
        return

    logger.info(
        "Database engine ready url=%s pool_size=%d",
        engine.url.render_as_string(hide_password=True),
        SETTINGS.db_pool_size,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
