"""Equipment and booking schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EquipmentResponse(BaseModel):
    """Bookable equipment item."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    location: str | None = None


class BookingCreateRequest(BaseModel):
    """Booking request. Naive datetimes are read in the configured booking timezone."""

    equipment_id: int
    start_time: datetime
    end_time: datetime
    purpose: str = Field(default="", max_length=2000)


class BookingResponse(BaseModel):
    """Booking as exposed to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    equipment_id: int
    user_id: int
    username: str
    start_time: datetime
    end_time: datetime
    purpose: str
    created_at: datetime
