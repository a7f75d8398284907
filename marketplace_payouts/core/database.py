"""
Async SQLAlchemy engine and session handling.

One engine per process, created by ``init_database`` at startup (API lifespan,
scheduler service, CLI) and disposed by ``close_database``.
"""

from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine
)

from .config import settings, DatabaseConfig
from .exceptions import DatabaseError
from .logging import get_logger

logger = get_logger(__name__)

async_engine: Optional[AsyncEngine] = None
async_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _require_engine() -> AsyncEngine:
    if async_engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return async_engine


def _payout_metadata() -> MetaData:
    from marketplace_payouts.models.base import Base
    import marketplace_payouts.models  # noqa: F401  registers vendor, order and payout tables

    return Base.metadata


async def init_database(database_url: Optional[str] = None) -> None:
    """Create the engine and session factory for ``database_url`` (or settings)."""
    global async_engine, async_session_maker

    url = DatabaseConfig.get_database_url(database_url)
    async_engine = create_async_engine(
        url,
        **DatabaseConfig.get_engine_config(url),
        echo=settings.debug
    )
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    logger.info("Database initialized", driver=async_engine.dialect.driver)


async def close_database() -> None:
    global async_engine, async_session_maker

    if async_engine is not None:
        await async_engine.dispose()
        logger.info("Database connections closed")

    async_engine = None
    async_session_maker = None


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session that commits on clean exit and rolls back on error.

    Usage:
        async with get_async_session() as session:
            await calculate_vendor_earnings(session, vendor_id, start, end)
    """
    _require_engine()

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class DatabaseManager:
    """Schema management and connectivity checks."""

    @staticmethod
    async def create_tables() -> None:
        metadata = _payout_metadata()
        async with _require_engine().begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Payout tables created", tables=sorted(metadata.tables))

    @staticmethod
    async def drop_tables() -> None:
        metadata = _payout_metadata()
        logger.warning("Dropping payout tables", tables=sorted(metadata.tables))
        async with _require_engine().begin() as conn:
            await conn.run_sync(metadata.drop_all)

    @staticmethod
    async def health_check() -> bool:
        """Return True when ``SELECT 1`` succeeds."""
        try:
            async with get_async_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False
