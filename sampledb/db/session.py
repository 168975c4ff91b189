"""Async engine and request-scoped sessions for the booking database."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from sampledb.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """Translate database settings into ``create_async_engine`` keyword arguments.

    Every pooled connection runs with a UTC session time zone so ``timestamptz``
    values and the booking range constraint compare the same instants the
    service computed; the service name shows up in ``pg_stat_activity``.
    """
    database = settings.database
    return {
        "pool_size": database.pool_size,
        "max_overflow": database.max_overflow,
        "pool_pre_ping": database.pool_pre_ping,
        "pool_recycle": database.pool_recycle_seconds,
        "connect_args": {
            "command_timeout": database.command_timeout_seconds,
            "server_settings": {
                "application_name": settings.app.service,
                "timezone": "UTC",
            },
        },
    }


@lru_cache
def get_engine() -> AsyncEngine:
    """Build and cache the async engine for the configured database."""
    settings = get_settings()
    return create_async_engine(settings.database.url, **engine_options(settings))


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    # Loaded rows stay usable after commit; routers serialize them afterwards.
    return async_sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; uncommitted work is rolled back on close."""
    async with get_session_factory()() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections and forget the cached engine and session factory."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    get_session_factory.cache_clear()
    get_engine.cache_clear()
