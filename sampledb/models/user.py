"""User ORM model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sampledb.db.base import Base, CreatedAtMixin

if TYPE_CHECKING:
    from sampledb.models.booking import Booking
    from sampledb.models.permission import EquipmentPermission


class User(Base, CreatedAtMixin):
    """Laboratory account; soft-deleted rows keep their username reserved."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_username_deleted_at", "username", "deleted_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    group_name: Mapped[str | None] = mapped_column(String(150), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    permissions: Mapped[list[EquipmentPermission]] = relationship(back_populates="user")
    bookings: Mapped[list[Booking]] = relationship(back_populates="user")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
