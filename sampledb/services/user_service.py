"""User lookup, password authentication and account administration services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import Literal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sampledb.config import get_settings
from sampledb.core.passwords import (
    PasswordHasher,
    PasswordPolicyError,
    get_password_hasher,
    validate_new_password,
)
from sampledb.core.sessions import Session, SessionManager
from sampledb.models.user import User
from sampledb.services.permission_service import PermissionService, get_permission_service

LoginFailure = Literal["invalid_credentials", "pending_approval", "account_disabled"]

logger = structlog.get_logger(__name__)


class UserServiceError(Exception):
    """Raised when user management operations fail validation or authorization."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a password login attempt."""

    user: User | None = None
    failure: LoginFailure | None = None


class UserService:
    """Service responsible for user retrieval, password checks and account changes."""

    def __init__(
        self,
        password_hasher: PasswordHasher,
        permission_service: PermissionService,
        min_password_length: int = 8,
    ) -> None:
        self._hasher = password_hasher
        self._permissions = permission_service
        self._min_password_length = min_password_length

    async def get_user_by_username(self, db_session: AsyncSession, username: str) -> User | None:
        """Fetch a non-deleted user by username."""
        statement = select(User).where(User.username == username, User.deleted_at.is_(None))
        result = await db_session.execute(statement)
        return result.scalar_one_or_none()

    async def authenticate(
        self,
        db_session: AsyncSession,
        username: str,
        password: str,
    ) -> LoginResult:
        """Check credentials and account state for password login.

        Unknown usernames and wrong passwords produce the same outcome. Approval
        and deletion state are only reported once the password has matched.
        """
        statement = select(User).where(User.username == username)
        result = await db_session.execute(statement)
        user = result.scalar_one_or_none()
        if user is None:
            self._hasher.dummy_verify()
            return LoginResult(failure="invalid_credentials")
        if not self._hasher.verify_password(user.password_hash, password):
            return LoginResult(failure="invalid_credentials")
        if user.is_deleted:
            return LoginResult(failure="account_disabled")
        if not user.is_approved:
            return LoginResult(failure="pending_approval")
        return LoginResult(user=user)

    async def open_session(
        self,
        db_session: AsyncSession,
        user: User,
        session_manager: SessionManager,
    ) -> Session | None:
        """Issue a session for an authenticated user, unless the account was removed meanwhile.

        The account is re-read after the session exists. A deletion committed before
        that read is seen here; one committed after it revokes the new session itself.
        """
        session = session_manager.create_session(user_id=user.id, username=user.username)
        statement = select(User.id).where(
            User.id == user.id,
            User.deleted_at.is_(None),
            User.is_approved.is_(True),
        )
        still_active = (await db_session.execute(statement)).scalar_one_or_none()
        if still_active is None:
            session_manager.revoke_session(session.token)
            logger.info("login_session_withdrawn", user_id=user.id)
            return None
        return session

    async def register(
        self,
        db_session: AsyncSession,
        username: str,
        password: str,
        confirm_password: str,
    ) -> User:
        """Create an unapproved account after validating the registration form."""
        normalized = username.strip()
        if not normalized or not password:
            raise UserServiceError("Username and password are required.", "missing_fields", 400)
        try:
            validate_new_password(
                password=password,
                confirm=confirm_password,
                min_length=self._min_password_length,
            )
        except PasswordPolicyError as exc:
            raise UserServiceError(exc.detail, exc.code, 400) from exc
        return await self.create_user(db_session=db_session, username=normalized, password=password)

    async def create_user(
        self,
        db_session: AsyncSession,
        username: str,
        password: str,
        approved: bool = False,
        is_admin: bool = False,
    ) -> User:
        """Insert a user row; soft-deleted accounts keep their username reserved."""
        existing = await db_session.execute(select(User.id).where(User.username == username))
        if existing.scalar_one_or_none() is not None:
            raise UserServiceError("Username already taken.", "username_taken", 409)

        user = User(
            username=username,
            password_hash=self._hasher.hash_password(password),
            is_approved=approved,
            is_admin=is_admin,
        )
        db_session.add(user)
        try:
            await db_session.flush()
        except IntegrityError as exc:
            await db_session.rollback()
            raise UserServiceError("Username already taken.", "username_taken", 409) from exc
        await db_session.commit()
        logger.info("user_created", user_id=user.id, approved=approved, is_admin=is_admin)
        return user

    async def change_password(
        self,
        db_session: AsyncSession,
        user_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        """Replace the caller's password after re-verifying the current one."""
        current_password = current_password.strip()
        new_password = new_password.strip()
        confirm_password = confirm_password.strip()
        if not current_password:
            raise UserServiceError("All fields are required.", "missing_fields", 400)
        try:
            validate_new_password(
                password=new_password,
                confirm=confirm_password,
                min_length=self._min_password_length,
            )
        except PasswordPolicyError as exc:
            raise UserServiceError(exc.detail, exc.code, 400) from exc

        user = await self._get_user_for_update(db_session=db_session, user_id=user_id)
        if user is None:
            raise UserServiceError("User not found.", "not_found", 404)
        if not self._hasher.verify_password(user.password_hash, current_password):
            raise UserServiceError("Current password is incorrect.", "invalid_credentials", 400)
        if new_password == current_password:
            raise UserServiceError(
                "New password must be different from the current password.",
                "password_policy",
                400,
            )

        user.password_hash = self._hasher.hash_password(new_password)
        await db_session.flush()
        await db_session.commit()
        logger.info("password_changed", user_id=user_id)

    async def list_users(self, db_session: AsyncSession) -> list[User]:
        """Return non-deleted users with their equipment grants loaded."""
        statement = (
            select(User)
            .where(User.deleted_at.is_(None))
            .options(selectinload(User.permissions))
            .order_by(User.username)
        )
        result = await db_session.execute(statement)
        return list(result.scalars().all())

    async def granted_equipment_ids(self, db_session: AsyncSession, user_id: int) -> set[int]:
        return await self._permissions.granted_equipment_ids(
            db_session=db_session, user_id=user_id
        )

    async def update_access(
        self,
        db_session: AsyncSession,
        user_id: int,
        approved: bool,
        group_name: str | None,
        equipment_ids: list[int],
    ) -> User:
        """Set approval, group label and the full equipment grant set in one transaction."""
        try:
            user = await self._get_user_for_update(db_session=db_session, user_id=user_id)
            if user is None:
                raise UserServiceError("User not found.", "not_found", 404)
            user.is_approved = approved
            user.group_name = (group_name or "").strip() or None
            await self._permissions.replace_grants(
                db_session=db_session,
                user_id=user_id,
                equipment_ids=equipment_ids,
                commit=False,
            )
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        logger.info(
            "user_access_updated",
            user_id=user_id,
            approved=approved,
            equipment_count=len(set(equipment_ids)),
        )
        return user

    async def set_admin(self, db_session: AsyncSession, user_id: int, is_admin: bool) -> User:
        """Grant or withdraw admin rights; effective on the user's next request."""
        user = await self._get_user_for_update(db_session=db_session, user_id=user_id)
        if user is None:
            raise UserServiceError("User not found.", "not_found", 404)
        user.is_admin = is_admin
        await db_session.flush()
        await db_session.commit()
        logger.info("user_admin_flag_set", user_id=user_id, is_admin=is_admin)
        return user

    async def delete_user(
        self,
        db_session: AsyncSession,
        actor_id: int,
        user_id: int,
        session_manager: SessionManager,
    ) -> User:
        """Soft-delete a user and revoke every session it holds."""
        if actor_id == user_id:
            raise UserServiceError("You cannot remove your own account.", "validation_error", 400)

        user = await self._get_user_for_update(db_session=db_session, user_id=user_id)
        if user is None:
            raise UserServiceError("User not found.", "not_found", 404)
        user.deleted_at = datetime.now(UTC)
        user.is_approved = False
        await db_session.flush()
        await db_session.commit()

        revoked = session_manager.revoke_user_sessions(user_id)
        logger.info("user_deleted", user_id=user_id, actor_id=actor_id, sessions_revoked=revoked)
        return user

    async def approve_user(self, db_session: AsyncSession, username: str) -> User:
        """Mark an account approved by username."""
        user = await self.get_user_by_username(db_session=db_session, username=username)
        if user is None:
            raise UserServiceError("User not found.", "not_found", 404)
        user.is_approved = True
        await db_session.flush()
        await db_session.commit()
        return user

    async def _get_user_for_update(self, db_session: AsyncSession, user_id: int) -> User | None:
        """Fetch non-deleted user row for mutation with row lock."""
        statement = (
            select(User).where(User.id == user_id, User.deleted_at.is_(None)).with_for_update()
        )
        result = await db_session.execute(statement)
        return result.scalar_one_or_none()


@lru_cache
def get_user_service() -> UserService:
    """Create and cache user service."""
    settings = get_settings()
    return UserService(
        password_hasher=get_password_hasher(),
        permission_service=get_permission_service(),
        min_password_length=settings.password.min_length,
    )
