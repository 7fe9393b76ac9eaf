"""
Async engine and session lifecycle for the document store.

One engine per process, created by init_db() in the application lifespan and
disposed by close_db(). Repositories get sessions either from the get_db()
FastAPI dependency or from the factory returned by get_session_factory().
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import Settings
from db.base import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

NOT_INITIALIZED = "Database not initialized. Call init_db() in application startup."


def init_db(settings: Settings) -> AsyncEngine:
    """
    Create the engine and session factory from settings.

    Pool sizing applies to server databases only; SQLite (tests, local runs)
    keeps SQLAlchemy's default pool for its driver.

    Returns:
        AsyncEngine: The new engine
    """
    global _engine, _session_factory

    url = make_url(settings.database_url)
    engine_options: dict[str, Any] = {}
    if url.get_backend_name() != "sqlite":
        engine_options = {
            "pool_size": settings.database_pool_size,
            "max_overflow": settings.database_max_overflow,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }

    _engine = create_async_engine(url, **engine_options)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info(
        "Database engine created",
        extra={"backend": url.get_backend_name(), "database": url.database},
    )
    return _engine


def get_engine() -> AsyncEngine:
    """
    Raises:
        RuntimeError: If init_db() has not run
    """
    if _engine is None:
        raise RuntimeError(NOT_INITIALIZED)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Raises:
        RuntimeError: If init_db() has not run
    """
    if _session_factory is None:
        raise RuntimeError(NOT_INITIALIZED)
    return _session_factory


async def create_schema() -> None:
    """Create any missing tables for the registered models."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request.

    Commits when the request handler returns, rolls back when it raises.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")
