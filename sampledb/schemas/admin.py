"""Schemas for admin user, group and equipment maintenance endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from sampledb.schemas.booking import EquipmentResponse


class AdminUserResponse(BaseModel):
    """User row as listed for administrators."""

    id: int
    username: str
    is_approved: bool
    is_admin: bool
    group_name: str | None
    equipment_ids: list[int]
    created_at: datetime


class UpdateAccessRequest(BaseModel):
    """Approval, group label and full equipment grant set for one user."""

    approved: bool
    group_name: str | None = Field(default=None, max_length=150)
    equipment_ids: list[int] = Field(default_factory=list)


class SetAdminRequest(BaseModel):
    """Admin flag update payload."""

    is_admin: bool


class AddEquipmentRequest(BaseModel):
    """New equipment payload."""

    name: str = Field(max_length=255)
    description: str | None = None
    location: str | None = Field(default=None, max_length=255)


class GroupResponse(BaseModel):
    """Catalogued research group."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime


class AddGroupRequest(BaseModel):
    """New group payload."""

    name: str = Field(max_length=150)


class AdminOverviewResponse(BaseModel):
    """Everything the admin console shows at once."""

    users: list[AdminUserResponse]
    groups: list[GroupResponse]
    equipment: list[EquipmentResponse]
