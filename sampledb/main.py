"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI

from sampledb.config import configure_structlog, get_settings
from sampledb.core.sessions import get_session_manager
from sampledb.db.session import dispose_engine
from sampledb.error_handlers import register_exception_handlers
from sampledb.middleware.correlation_id import CorrelationIdMiddleware
from sampledb.middleware.logging import LoggingMiddleware
from sampledb.middleware.security_headers import SecurityHeadersMiddleware
from sampledb.routers import admin, auth, bookings, health

logger = structlog.get_logger(__name__)


async def _sweep_sessions_periodically(interval_seconds: int) -> None:
    """Drop expired sessions every ``interval_seconds`` until cancelled."""
    session_manager = get_session_manager()
    while True:
        await asyncio.sleep(interval_seconds)
        removed = await asyncio.to_thread(session_manager.sweep_expired)
        if removed:
            logger.info("sessions_swept", removed=removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the optional session sweeper and release pooled connections on shutdown."""
    settings = get_settings()
    sweeper: asyncio.Task[None] | None = None
    if settings.session.sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            _sweep_sessions_periodically(settings.session.sweep_interval_seconds)
        )
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
        await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_structlog(settings)

    app = FastAPI(title=settings.app.service, lifespan=lifespan)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.session.cookie_secure)
    app.add_middleware(CorrelationIdMiddleware)
    register_exception_handlers(app, environment=settings.app.environment)

    app.include_router(auth.router)
    app.include_router(bookings.router)
    app.include_router(admin.router)
    app.include_router(health.router)
    return app


app = create_app()
