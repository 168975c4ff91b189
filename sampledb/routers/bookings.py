"""Equipment and booking routes for signed-in users."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.core.sessions import Identity
from sampledb.dependencies import get_database_session, require_authenticated
from sampledb.schemas.booking import BookingCreateRequest, BookingResponse, EquipmentResponse
from sampledb.services.booking_service import (
    BookingService,
    BookingServiceError,
    get_booking_service,
)
from sampledb.services.equipment_service import EquipmentService, get_equipment_service
from sampledb.services.permission_service import PermissionService, get_permission_service

router = APIRouter(prefix="/api", tags=["bookings"])


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    """Build standardized API error response payload."""
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


@router.get("/equipment", response_model=list[EquipmentResponse])
async def list_equipment(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    equipment_service: Annotated[EquipmentService, Depends(get_equipment_service)],
) -> list[EquipmentResponse]:
    """List all bookable equipment."""
    items = await equipment_service.list_equipment(db_session=db_session)
    return [EquipmentResponse.model_validate(item) for item in items]


@router.get("/equipment/permissions")
async def equipment_permissions(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    permission_service: Annotated[PermissionService, Depends(get_permission_service)],
) -> dict[int, bool]:
    """Map each equipment id to whether the caller may book it."""
    return await permission_service.permission_map(
        db_session=db_session, user_id=identity.user_id
    )


@router.get("/bookings", response_model=list[BookingResponse])
async def list_bookings(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
    start: Annotated[datetime, Query()],
    end: Annotated[datetime, Query()],
) -> list[BookingResponse] | JSONResponse:
    """List bookings overlapping the ``[start, end)`` window."""
    try:
        views = await booking_service.list_bookings(
            db_session=db_session, window_start=start, window_end=end
        )
    except BookingServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return [BookingResponse.model_validate(view) for view in views]


@router.get("/bookings/mine", response_model=list[BookingResponse])
async def list_my_bookings(
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> list[BookingResponse]:
    """List the caller's bookings that have not ended."""
    views = await booking_service.list_user_bookings(
        db_session=db_session, user_id=identity.user_id
    )
    return [BookingResponse.model_validate(view) for view in views]


@router.post("/bookings", status_code=201, response_model=BookingResponse)
async def create_booking(
    payload: BookingCreateRequest,
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> BookingResponse | JSONResponse:
    """Book equipment for the caller."""
    try:
        booking = await booking_service.create_booking(
            db_session=db_session,
            equipment_id=payload.equipment_id,
            user_id=identity.user_id,
            start=payload.start_time,
            end=payload.end_time,
            purpose=payload.purpose,
        )
    except BookingServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return BookingResponse(
        id=booking.id,
        equipment_id=booking.equipment_id,
        user_id=booking.user_id,
        username=identity.username,
        start_time=booking.start_time,
        end_time=booking.end_time,
        purpose=booking.purpose,
        created_at=booking.created_at,
    )


@router.delete("/bookings/{booking_id}", status_code=204)
async def delete_booking(
    booking_id: int,
    identity: Annotated[Identity, Depends(require_authenticated)],
    db_session: Annotated[AsyncSession, Depends(get_database_session)],
    booking_service: Annotated[BookingService, Depends(get_booking_service)],
) -> Response:
    """Cancel one of the caller's own bookings."""
    try:
        await booking_service.delete_booking(
            db_session=db_session,
            booking_id=booking_id,
            requesting_user_id=identity.user_id,
        )
    except BookingServiceError as exc:
        return _error_response(status_code=exc.status_code, detail=exc.detail, code=exc.code)
    return Response(status_code=204)
