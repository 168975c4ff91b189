"""Login, logout, registration and password routes."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.config import Settings, get_settings
from sampledb.core.sessions import (
    SESSION_COOKIE_NAME,
    Identity,
    SessionManager,
    get_session_manager,
)
from sampledb.dependencies import get_database_session, require_authenticated
from sampledb.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    RegisterResponse,
)
from sampledb.services.permission_service import PermissionService, get_permission_service
from sampledb.services.user_service import UserService, UserServiceError, get_user_service

router = APIRouter(tags=["auth"])

logger = structlog.get_logger(__name__)

_LOGIN_FAILURES: dict[str, tuple[int, str]] = {
    "invalid_credentials": (401, "Invalid username or password."),
    "pending_approval": (403, "Your account is pending approval."),
    "account_disabled": (403, "Account is disabled."),
}


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    """Build standardized API error response payload."""
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session.ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.session.cookie_secure,
        samesite="strict",
    )


def _clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.session.cookie_secure,
        samesite="strict",
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse | JSONResponse:
    """Check credentials and open a cookie-backed session."""
    outcome = await user_service.authenticate(
        db_session=db_session,
        username=payload.username.strip(),
        password=payload.password,
    )
    if outcome.user is None:
        failure = outcome.failure or "invalid_credentials"
        status_code, detail = _LOGIN_FAILURES[failure]
        logger.info("login_failed", reason=failure)
        return _error_response(status_code=status_code, detail=detail, code=failure)

    session = await user_service.open_session(
        db_session=db_session, user=outcome.user, session_manager=session_manager
    )
    if session is None:
        status_code, detail = _LOGIN_FAILURES["account_disabled"]
        logger.info("login_failed", reason="account_disabled")
        return _error_response(status_code=status_code, detail=detail, code="account_disabled")
    _set_session_cookie(response, session.token, settings)
    logger.info("login_succeeded", user_id=outcome.user.id)
    return LoginResponse(
        user_id=session.user_id,
        username=session.username,
        expires_at=session.expires_at,
    )


@router.post("/logout", status_code=204)
def logout(
    request: Request,
    identity: Annotated[Identity, Depends(require_authenticated)],
    session_manager: Annotated[SessionManager, Depends(get_session_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Revoke the caller's session token and expire the cookie."""
    session_manager.revoke_session(request.cookies.get(SESSION_COOKIE_NAME, ""))
    response = Response(status_code=204)
    _clear_session_cookie(response, settings)
    logger.info("logout", user_id=identity.user_id)
    return response


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(
    payload: RegisterRequest,
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> RegisterResponse | JSONResponse:
    """Create an account that stays unusable until an admin approves it."""
    try:
        user = await user_service.register(
            db_session=db_session,
            username=payload.username,
            password=payload.password,
            confirm_password=payload.confirm_password,
        )
    except UserServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return RegisterResponse(username=user.username)


@router.get("/me", response_model=MeResponse)
async def me(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    permission_service: Annotated[PermissionService, Depends(get_permission_service)],
) -> MeResponse:
    """Return the caller's identity and current admin flag."""
    is_admin = await permission_service.is_admin(db_session=db_session, user_id=identity.user_id)
    return MeResponse(user_id=identity.user_id, username=identity.username, is_admin=is_admin)


@router.post("/change-password", status_code=204)
async def change_password(
    payload: ChangePasswordRequest,
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> Response:
    """Replace the caller's password; existing sessions stay valid."""
    try:
        await user_service.change_password(
            db_session=db_session,
            user_id=identity.user_id,
            current_password=payload.current_password,
            new_password=payload.new_password,
            confirm_password=payload.confirm_password,
        )
    except UserServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return Response(status_code=204)
