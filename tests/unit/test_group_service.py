"""Unit tests for group catalogue maintenance."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy.dialects import postgresql

from sampledb.models.group import Group
from sampledb.services.group_service import GroupService, GroupServiceError


class _Scalars:
    def __init__(self, values: list[Any]) -> None:
        self._values = values

    def all(self) -> list[Any]:
        return list(self._values)


class _FakeResult:
    def __init__(self, value: Any, rowcount: int = 0) -> None:
        self._value = value
        self.rowcount = rowcount

    def scalar_one(self) -> Any:
        assert self._value is not None
        return self._value

    def scalar_one_or_none(self) -> Any:
        return self._value

    def scalars(self) -> _Scalars:
        return _Scalars(self._value or [])


class _FakeSession:
    """Async session stub replaying queued results and recording statements."""

    def __init__(self, results: list[_FakeResult] | None = None) -> None:
        self._results = list(results or [])
        self.statements: list[Any] = []
        self.deleted: list[Any] = []
        self.commit_count = 0
        self.rollback_count = 0

    async def execute(self, statement: Any) -> _FakeResult:
        self.statements.append(statement)
        return self._results.pop(0) if self._results else _FakeResult(None)

    async def delete(self, instance: Any) -> None:
        self.deleted.append(instance)

    async def flush(self) -> None:
        return None

    async def commit(self) -> None:
        self.commit_count += 1

    async def rollback(self) -> None:
        self.rollback_count += 1


def _group(name: str = "Imaging", group_id: int = 4) -> Group:
    return Group(id=group_id, name=name, created_at=datetime.now(UTC))


def _sql(statement: Any) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


async def test_add_group_trims_name_and_ignores_duplicates() -> None:
    service = GroupService()
    existing = _group()
    session = _FakeSession([_FakeResult(None), _FakeResult(existing)])

    group = await service.add_group(db_session=session, name="  Imaging ")  # type: ignore[arg-type]

    assert group is existing
    insert_sql = _sql(session.statements[0])
    assert "INSERT INTO groups" in insert_sql
    assert "ON CONFLICT (name) DO NOTHING" in insert_sql
    assert session.statements[0].compile(dialect=postgresql.dialect()).params == {
        "name": "Imaging"
    }
    assert session.commit_count == 1


async def test_add_group_rejects_blank_name() -> None:
    service = GroupService()
    session = _FakeSession()

    with pytest.raises(GroupServiceError) as exc_info:
        await service.add_group(db_session=session, name="   ")  # type: ignore[arg-type]

    assert exc_info.value.code == "validation_error"
    assert exc_info.value.status_code == 400
    assert session.statements == []


async def test_delete_group_clears_matching_labels_before_removal() -> None:
    service = GroupService()
    group = _group()
    session = _FakeSession([_FakeResult(group), _FakeResult(None, rowcount=2)])

    cleared = await service.delete_group(db_session=session, group_id=4)  # type: ignore[arg-type]

    assert cleared == 2
    update_sql = _sql(session.statements[1])
    assert update_sql.startswith("UPDATE users SET group_name=")
    assert "btrim(users.group_name)" in update_sql
    assert session.deleted == [group]
    assert session.commit_count == 1


async def test_delete_unknown_group_is_not_found() -> None:
    service = GroupService()
    session = _FakeSession([_FakeResult(None)])

    with pytest.raises(GroupServiceError) as exc_info:
        await service.delete_group(db_session=session, group_id=99)  # type: ignore[arg-type]

    assert exc_info.value.status_code == 404
    assert session.rollback_count == 1
    assert session.commit_count == 0


async def test_list_groups_orders_by_name() -> None:
    service = GroupService()
    groups = [_group("Cryo", 2), _group("Imaging", 1)]
    session = _FakeSession([_FakeResult(groups)])

    listed = await service.list_groups(db_session=session)  # type: ignore[arg-type]

    assert listed == groups
    assert "ORDER BY groups.name" in _sql(session.statements[0])
