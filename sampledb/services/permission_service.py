"""Per-user equipment grant lookups and maintenance."""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

from sqlalchemy import delete, exists, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.models.equipment import Equipment
from sampledb.models.permission import EquipmentPermission
from sampledb.models.user import User


class PermissionService:
    """Resolve who may book which equipment."""

    async def has_permission(
        self,
        db_session: AsyncSession,
        user_id: int,
        equipment_id: int,
    ) -> bool:
        """Return True iff a grant row exists for the pair."""
        statement = select(
            exists().where(
                EquipmentPermission.user_id == user_id,
                EquipmentPermission.equipment_id == equipment_id,
            )
        )
        result = await db_session.execute(statement)
        return bool(result.scalar())

    async def is_admin(self, db_session: AsyncSession, user_id: int) -> bool:
        """Read the current admin flag; unknown and deleted users are never admin."""
        statement = select(User.is_admin).where(User.id == user_id, User.deleted_at.is_(None))
        result = await db_session.execute(statement)
        return bool(result.scalar_one_or_none())

    async def granted_equipment_ids(self, db_session: AsyncSession, user_id: int) -> set[int]:
        """Return the ids of every equipment item granted to the user."""
        statement = select(EquipmentPermission.equipment_id).where(
            EquipmentPermission.user_id == user_id
        )
        result = await db_session.execute(statement)
        return set(result.scalars().all())

    async def permission_map(self, db_session: AsyncSession, user_id: int) -> dict[int, bool]:
        """Map every equipment id to whether the user may book it.

        Admins may book everything regardless of grants.
        """
        equipment_ids = (await db_session.execute(select(Equipment.id))).scalars().all()
        if await self.is_admin(db_session=db_session, user_id=user_id):
            return {equipment_id: True for equipment_id in equipment_ids}
        granted = await self.granted_equipment_ids(db_session=db_session, user_id=user_id)
        return {equipment_id: equipment_id in granted for equipment_id in equipment_ids}

    async def grant(
        self,
        db_session: AsyncSession,
        user_id: int,
        equipment_id: int,
        commit: bool = True,
    ) -> None:
        """Add a grant; granting twice is a no-op."""
        statement = (
            insert(EquipmentPermission)
            .values(user_id=user_id, equipment_id=equipment_id)
            .on_conflict_do_nothing(index_elements=["user_id", "equipment_id"])
        )
        await db_session.execute(statement)
        if commit:
            await db_session.commit()

    async def revoke(
        self,
        db_session: AsyncSession,
        user_id: int,
        equipment_id: int,
        commit: bool = True,
    ) -> None:
        """Remove a grant if present."""
        await db_session.execute(
            delete(EquipmentPermission).where(
                EquipmentPermission.user_id == user_id,
                EquipmentPermission.equipment_id == equipment_id,
            )
        )
        if commit:
            await db_session.commit()

    async def replace_grants(
        self,
        db_session: AsyncSession,
        user_id: int,
        equipment_ids: Iterable[int],
        commit: bool = True,
    ) -> None:
        """Make the user's grant set exactly ``equipment_ids``; unknown ids are skipped."""
        requested = set(equipment_ids)
        await db_session.execute(
            delete(EquipmentPermission).where(EquipmentPermission.user_id == user_id)
        )
        known: list[int] = []
        if requested:
            result = await db_session.execute(
                select(Equipment.id).where(Equipment.id.in_(requested))
            )
            known = sorted(result.scalars().all())
        for equipment_id in known:
            await self.grant(
                db_session=db_session,
                user_id=user_id,
                equipment_id=equipment_id,
                commit=False,
            )
        if commit:
            await db_session.commit()


@lru_cache
def get_permission_service() -> PermissionService:
    """Create and cache permission service."""
    return PermissionService()
