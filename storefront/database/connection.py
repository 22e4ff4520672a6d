"""
Async engine and session management.

Services own their transactions: they commit once a unit of work is
complete and roll back on failure. The request scoped ``get_db`` session
only guarantees that anything left uncommitted by a failed request is
rolled back before the connection returns to the pool.
"""

import asyncio
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def async_database_url(url: str) -> str:
    """Rewrite a plain ``postgresql://`` URL to use the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_options(settings: Settings, url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug}
    if url.startswith("sqlite"):
        return options
    if settings.is_test:
        options["poolclass"] = NullPool
        return options

    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={
            "server_settings": {"application_name": settings.app_name},
            "command_timeout": 60,
        },
    )
    return options


def get_engine() -> AsyncEngine:
    """Get the shared engine, creating it on first use."""
    global _engine

    if _engine is None:
        settings = get_settings()
        url = async_database_url(settings.database_url)
        _engine = create_async_engine(url, **_engine_options(settings, url))
        logger.info(
            "Database engine created",
            driver=_engine.dialect.driver,
            pool_size=settings.db_pool_size,
            environment=settings.environment,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the shared session factory.

    Loaded attributes survive a commit so services can render an order
    they have just committed without another round trip.
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request scoped session."""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Run ``SELECT 1``, retrying with exponential backoff.

    Returns:
        True once a check succeeds, False when every attempt failed
    """
    for attempt in range(1, max_retries + 1):
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(
                "Database health check failed",
                attempt=attempt,
                max_retries=max_retries,
                error=str(e),
                error_type=type(e).__name__,
            )
        if attempt < max_retries:
            await asyncio.sleep(retry_delay * 2 ** (attempt - 1))
    return False


async def close_database_connections() -> None:
    """Dispose of the engine on application shutdown."""
    global _engine, _session_factory

    if _engine is None:
        return
    try:
        await _engine.dispose()
        logger.info("Database engine disposed")
    finally:
        _engine = None
        _session_factory = None
