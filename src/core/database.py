"""Async SQLAlchemy engine singleton for PostgreSQL operations."""

from functools import lru_cache
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.core.config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    """Get cached async engine singleton for database operations.

    The engine owns a connection pool; each operation checks out its own
    connection, so the engine is safe to share across concurrent requests.

    Returns:
        AsyncEngine: SQLAlchemy async engine bound to the configured database.
    """
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


async def dispose_engine() -> None:
    """Close all pooled connections if the engine was ever created."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_engine.cache_clear()


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
