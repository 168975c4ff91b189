"""Shared FastAPI dependency helpers and the session access gate."""

from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.core.sessions import (
    SESSION_COOKIE_NAME,
    Identity,
    SessionManager,
    get_session_manager,
)
from sampledb.db.session import get_db_session
from sampledb.services.permission_service import PermissionService, get_permission_service

LOGIN_PATH = "/login"
ADMIN_DENIED_PATH = "/"

logger = structlog.get_logger(__name__)


class RedirectRequired(Exception):
    """Raised by access guards; rendered as a 303 redirect to ``location``."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """Expose the request-scoped async database session dependency."""
    async for session in get_db_session():
        yield session


def require_authenticated(
    request: Request,
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> Identity:
    """Resolve the session cookie to an identity or redirect to the login page."""
    identity = session_manager.resolve_session(request.cookies.get(SESSION_COOKIE_NAME))
    if identity is None:
        raise RedirectRequired(LOGIN_PATH)
    return identity


async def require_admin(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    permission_service: Annotated[PermissionService, Depends(get_permission_service)],
) -> Identity:
    """Re-check the stored admin flag on every request; non-admins are sent home."""
    try:
        is_admin = await permission_service.is_admin(
            db_session=db_session, user_id=identity.user_id
        )
    except SQLAlchemyError:
        logger.warning("admin_check_failed", user_id=identity.user_id, exc_info=True)
        is_admin = False
    if not is_admin:
        logger.warning("admin_required", user_id=identity.user_id)
        raise RedirectRequired(ADMIN_DENIED_PATH)
    return identity

