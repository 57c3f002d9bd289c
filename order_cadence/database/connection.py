"""
Database Connection Management

Async database engine and session factory with SQLAlchemy 2.0.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from order_cadence.config import get_settings
from order_cadence.database.models import Base

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    In-memory SQLite keeps one shared connection so every session sees the
    same database; other backends pool inside the driver.
    """
    engine_config = {
        "echo": echo,
        "poolclass": StaticPool if url.startswith("sqlite") else NullPool,
    }
    if url.startswith("sqlite"):
        engine_config["connect_args"] = {"check_same_thread": False}
    else:
        engine_config["pool_pre_ping"] = True

    return create_async_engine(url, **engine_config)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the database engine.

    Args:
        url: Override for the configured database URL

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    _engine = build_engine(url or settings.database.async_url, echo=settings.database.echo)
    _async_session_factory = build_session_factory(_engine)

    # Verify connection
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection established", dialect=_engine.dialect.name)
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        await close_database()
        raise

    return _engine


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create the schema if it does not exist"""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured", tables=sorted(Base.metadata.tables))


async def close_database() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory for repositories.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _async_session_factory


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session.

    Commits on success, rolls back and re-raises on error.

    Example:
        async with get_db() as db:
            result = await db.execute(query)
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()
