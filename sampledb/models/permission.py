"""Per-user equipment grant ORM model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sampledb.db.base import Base

if TYPE_CHECKING:
    from sampledb.models.user import User


class EquipmentPermission(Base):
    """Presence of a row grants the user the right to book the equipment."""

    __tablename__ = "user_equipment_permissions"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    equipment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("equipment.id", ondelete="CASCADE"), primary_key=True
    )

    user: Mapped[User] = relationship(back_populates="permissions")
