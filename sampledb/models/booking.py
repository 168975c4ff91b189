"""Equipment booking ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sampledb.db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from sampledb.models.user import User


class Booking(Base, CreatedAtMixin):
    """Reservation of one equipment item over the half-open interval [start_time, end_time).

    Non-overlap per equipment is enforced in PostgreSQL by the
    ``ex_bookings_equipment_slot`` exclusion constraint created in the initial migration.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="time_order"),
        Index("ix_bookings_equipment_id_start_time", "equipment_id", "start_time"),
        Index("ix_bookings_user_id_end_time", "user_id", "end_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    equipment_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)

    user: Mapped[User] = relationship(back_populates="bookings")
