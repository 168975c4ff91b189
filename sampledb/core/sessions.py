"""In-process login session table."""

from __future__ import annotations

import secrets
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache

import structlog

from sampledb.config import get_settings

SESSION_COOKIE_NAME = "session_token"
_TOKEN_BYTES = 32

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved from a session token."""

    user_id: int
    username: str


@dataclass(frozen=True)
class Session:
    """One issued login session."""

    token: str
    user_id: int
    username: str
    expires_at: datetime

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.user_id, username=self.username)


class _ReadWriteLock:
    """Many concurrent readers or a single writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class SessionManager:
    """Issue, resolve and revoke opaque session tokens.

    Sessions live only in this process; a restart invalidates all of them.
    Expired entries are purged lazily when resolved, or in bulk by
    ``sweep_expired``.

    ``revoke_user_sessions`` removes every session that exists when it takes the
    write lock. A session created for the same user after that point survives,
    so callers revoking because of account deletion must commit the deletion
    first, and logins re-check the account once their session exists
    (``UserService.open_session``).
    """

    def __init__(
        self,
        ttl_seconds: int,
        now: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._now = now or (lambda: datetime.now(UTC))
        self._token_factory = token_factory or (lambda: secrets.token_urlsafe(_TOKEN_BYTES))
        self._sessions: dict[str, Session] = {}
        self._lock = _ReadWriteLock()

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def create_session(self, user_id: int, username: str) -> Session:
        """Store a new session for an already authenticated user."""
        with self._lock.write():
            token = self._token_factory()
            while token in self._sessions:
                token = self._token_factory()
            session = Session(
                token=token,
                user_id=user_id,
                username=username,
                expires_at=self._now() + self._ttl,
            )
            self._sessions[token] = session
        logger.info("session_created", user_id=user_id, expires_at=session.expires_at.isoformat())
        return session

    def resolve_session(self, token: str | None) -> Identity | None:
        """Return the identity bound to a live token, purging it once expired."""
        if not token:
            return None
        with self._lock.read():
            session = self._sessions.get(token)
        if session is None:
            return None
        if self._now() <= session.expires_at:
            return session.identity

        with self._lock.write():
            current = self._sessions.get(token)
            if current is not None and self._now() > current.expires_at:
                del self._sessions[token]
                logger.info("session_expired", user_id=current.user_id)
        return None

    def revoke_session(self, token: str | None) -> None:
        """Delete a session; unknown tokens are ignored."""
        if not token:
            return
        with self._lock.write():
            self._sessions.pop(token, None)

    def revoke_user_sessions(self, user_id: int) -> int:
        """Delete every session bound to the user and return how many were removed."""
        with self._lock.write():
            tokens = [
                token for token, session in self._sessions.items() if session.user_id == user_id
            ]
            for token in tokens:
                del self._sessions[token]
        logger.info("sessions_revoked", user_id=user_id, count=len(tokens))
        return len(tokens)

    def sweep_expired(self) -> int:
        """Purge all expired sessions and return how many were removed."""
        now = self._now()
        with self._lock.write():
            expired = [
                token for token, session in self._sessions.items() if now > session.expires_at
            ]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("sessions_swept", count=len(expired))
        return len(expired)

    def active_count(self) -> int:
        with self._lock.read():
            return len(self._sessions)


@lru_cache
def get_session_manager() -> SessionManager:
    """Create and cache the process-wide session manager."""
    settings = get_settings()
    return SessionManager(ttl_seconds=settings.session.ttl_seconds)
