"""Research group catalogue maintenance."""

from __future__ import annotations

from functools import lru_cache

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.models.group import Group
from sampledb.models.user import User

logger = structlog.get_logger(__name__)


class GroupServiceError(Exception):
    """Raised when a group catalogue change is rejected."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


class GroupService:
    """List, add and remove the group names admins assign to accounts."""

    async def list_groups(self, db_session: AsyncSession) -> list[Group]:
        result = await db_session.execute(select(Group).order_by(Group.name))
        return list(result.scalars().all())

    async def add_group(self, db_session: AsyncSession, name: str) -> Group:
        """Add a group by name; adding an existing name returns the existing row."""
        normalized = name.strip()
        if not normalized:
            raise GroupServiceError("Group name is required.", "validation_error", 400)

        statement = (
            insert(Group).values(name=normalized).on_conflict_do_nothing(index_elements=["name"])
        )
        try:
            await db_session.execute(statement)
            result = await db_session.execute(select(Group).where(Group.name == normalized))
            group = result.scalar_one()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        logger.info("group_added", group_id=group.id)
        return group

    async def delete_group(self, db_session: AsyncSession, group_id: int) -> int:
        """Remove a group and clear its label from every account carrying it.

        Returns the number of accounts whose label was cleared.
        """
        try:
            statement = select(Group).where(Group.id == group_id).with_for_update()
            group = (await db_session.execute(statement)).scalar_one_or_none()
            if group is None:
                raise GroupServiceError("Group not found.", "not_found", 404)
            cleared = await db_session.execute(
                update(User)
                .where(func.btrim(User.group_name) == group.name)
                .values(group_name=None)
                .execution_options(synchronize_session="fetch")
            )
            await db_session.delete(group)
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        logger.info("group_deleted", group_id=group_id, users_cleared=cleared.rowcount)
        return cleared.rowcount


@lru_cache
def get_group_service() -> GroupService:
    """Create and cache group service."""
    return GroupService()
