"""Login, registration and password change schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Password login request payload."""

    username: str = Field(max_length=150)
    password: str = Field(max_length=256)


class LoginResponse(BaseModel):
    """Successful login payload; the session token travels only in the cookie."""

    user_id: int
    username: str
    expires_at: datetime


class RegisterRequest(BaseModel):
    """Self-registration payload. Blank fields are reported as missing_fields."""

    username: str = Field(default="", max_length=150)
    password: str = Field(default="", max_length=256)
    confirm_password: str = Field(default="", max_length=256)


class RegisterResponse(BaseModel):
    """Registration acknowledgement; accounts wait for admin approval."""

    username: str
    status: Literal["pending_approval"] = "pending_approval"


class ChangePasswordRequest(BaseModel):
    """Password change payload."""

    current_password: str = Field(default="", max_length=256)
    new_password: str = Field(default="", max_length=256)
    confirm_password: str = Field(default="", max_length=256)


class MeResponse(BaseModel):
    """Current caller identity."""

    user_id: int
    username: str
    is_admin: bool
