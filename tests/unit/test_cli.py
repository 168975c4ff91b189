"""Unit tests for CLI argument parsing and dispatch."""

from __future__ import annotations

import pytest

from sampledb import cli


def test_create_user_flags_are_dispatched(monkeypatch) -> None:
    seen: dict[str, object] = {}

    async def _fake_create(username: str, password: str, approve: bool, admin: bool) -> int:
        seen.update(username=username, password=password, approve=approve, admin=admin)
        return 0

    monkeypatch.setattr(cli, "_run_create_user", _fake_create)

    exit_code = cli.main(
        ["create-user", "--username", "root", "--password", "Password123!", "--approve", "--admin"]
    )

    assert exit_code == 0
    assert seen == {"username": "root", "password": "Password123!", "approve": True, "admin": True}


def test_create_user_defaults_to_pending_non_admin(monkeypatch) -> None:
    seen: dict[str, object] = {}

    async def _fake_create(username: str, password: str, approve: bool, admin: bool) -> int:
        seen.update(approve=approve, admin=admin)
        return 0

    monkeypatch.setattr(cli, "_run_create_user", _fake_create)

    cli.main(["create-user", "--username", "bob", "--password", "Password123!"])

    assert seen == {"approve": False, "admin": False}


def test_approve_user_dispatch(monkeypatch) -> None:
    async def _fake_approve(username: str) -> int:
        return 0 if username == "bob" else 1

    monkeypatch.setattr(cli, "_run_approve_user", _fake_approve)

    assert cli.main(["approve-user", "--username", "bob"]) == 0


def test_missing_command_exits_with_usage_error() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])

    assert exc_info.value.code == 2
