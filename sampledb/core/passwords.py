"""Password hashing and password policy checks."""

from __future__ import annotations

from functools import lru_cache

from passlib.context import CryptContext

from sampledb.config import get_settings


class PasswordPolicyError(Exception):
    """Raised when a new password does not satisfy the password policy."""

    def __init__(self, detail: str, code: str) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code


class PasswordHasher:
    """Salted bcrypt hashing with constant-time verification."""

    def __init__(self, rounds: int = 12) -> None:
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash_password(self, password: str) -> str:
        """Generate a bcrypt hash with a fresh random salt."""
        return str(self._context.hash(password))

    def verify_password(self, password_hash: str, candidate: str) -> bool:
        """Return True only when candidate matches the stored hash.

        Malformed or unrecognised hashes are treated as a mismatch.
        """
        try:
            return bool(self._context.verify(candidate, password_hash))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend one verification worth of time for unknown accounts."""
        self._context.dummy_verify()


def validate_new_password(
    password: str,
    confirm: str,
    min_length: int,
) -> None:
    """Apply the registration/change password policy."""
    if not password or not confirm:
        raise PasswordPolicyError("All fields are required.", "missing_fields")
    if len(password) < min_length:
        raise PasswordPolicyError(
            f"Password must be at least {min_length} characters long.", "password_policy"
        )
    if password != confirm:
        raise PasswordPolicyError("Passwords do not match.", "password_mismatch")


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Create and cache the password hasher."""
    settings = get_settings()
    return PasswordHasher(rounds=settings.password.bcrypt_rounds)
