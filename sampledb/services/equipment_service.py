"""Equipment reference data maintenance."""

from __future__ import annotations

from functools import lru_cache

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.models.booking import Booking
from sampledb.models.equipment import Equipment
from sampledb.models.permission import EquipmentPermission

logger = structlog.get_logger(__name__)


class EquipmentServiceError(Exception):
    """Raised when equipment maintenance fails validation."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


class EquipmentService:
    """List, add and remove bookable equipment."""

    async def list_equipment(self, db_session: AsyncSession) -> list[Equipment]:
        result = await db_session.execute(select(Equipment).order_by(Equipment.name))
        return list(result.scalars().all())

    async def add_equipment(
        self,
        db_session: AsyncSession,
        name: str,
        description: str | None = None,
        location: str | None = None,
    ) -> Equipment:
        """Insert equipment with a unique, non-blank name."""
        normalized = name.strip()
        if not normalized:
            raise EquipmentServiceError("Equipment name is required.", "validation_error", 400)

        equipment = Equipment(name=normalized, description=description, location=location)
        db_session.add(equipment)
        try:
            await db_session.flush()
        except IntegrityError as exc:
            await db_session.rollback()
            raise EquipmentServiceError(
                "Equipment name already exists.", "name_taken", 409
            ) from exc
        await db_session.commit()
        logger.info("equipment_added", equipment_id=equipment.id)
        return equipment

    async def delete_equipment(self, db_session: AsyncSession, equipment_id: int) -> None:
        """Remove equipment together with its bookings and grants."""
        try:
            statement = select(Equipment).where(Equipment.id == equipment_id).with_for_update()
            equipment = (await db_session.execute(statement)).scalar_one_or_none()
            if equipment is None:
                raise EquipmentServiceError("Equipment not found.", "not_found", 404)
            await db_session.execute(delete(Booking).where(Booking.equipment_id == equipment_id))
            await db_session.execute(
                delete(EquipmentPermission).where(
                    EquipmentPermission.equipment_id == equipment_id
                )
            )
            await db_session.delete(equipment)
            await db_session.flush()
        except Exception:
            await db_session.rollback()
            raise
        await db_session.commit()
        logger.info("equipment_deleted", equipment_id=equipment_id)


@lru_cache
def get_equipment_service() -> EquipmentService:
    """Create and cache equipment service."""
    return EquipmentService()
