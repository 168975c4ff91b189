"""Research group catalogue ORM model."""

from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sampledb.db.base import Base, CreatedAtMixin


class Group(Base, CreatedAtMixin):
    """Named research group offered to admins when labelling accounts.

    Users carry the group as a plain label (``User.group_name``); the catalogue
    is not a foreign key, so removing a group clears matching labels instead.
    """

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
