"""Unit tests for password hashing and policy checks."""

from __future__ import annotations

import pytest

from sampledb.core.passwords import PasswordHasher, PasswordPolicyError, validate_new_password


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def test_hash_is_salted_and_verifies(hasher: PasswordHasher) -> None:
    """Two hashes of one password differ, and both verify."""
    first = hasher.hash_password("correct horse")
    second = hasher.hash_password("correct horse")

    assert first != second
    assert "correct horse" not in first
    assert hasher.verify_password(first, "correct horse")
    assert hasher.verify_password(second, "correct horse")
    assert not hasher.verify_password(first, "correct horsf")


def test_malformed_hash_is_a_mismatch(hasher: PasswordHasher) -> None:
    assert hasher.verify_password("not-a-bcrypt-hash", "anything") is False


def test_dummy_verify_runs_without_error(hasher: PasswordHasher) -> None:
    hasher.dummy_verify()


@pytest.mark.parametrize(
    ("password", "confirm", "code"),
    [
        ("", "", "missing_fields"),
        ("longenough", "", "missing_fields"),
        ("short", "short", "password_policy"),
        ("longenough", "different1", "password_mismatch"),
    ],
)
def test_validate_new_password_rejections(password: str, confirm: str, code: str) -> None:
    with pytest.raises(PasswordPolicyError) as exc_info:
        validate_new_password(password=password, confirm=confirm, min_length=8)

    assert exc_info.value.code == code


def test_validate_new_password_accepts_matching_long_password() -> None:
    validate_new_password(password="12345678", confirm="12345678", min_length=8)
