"""Equipment booking creation, conflict detection and listing."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sampledb.config import get_settings
from sampledb.models.booking import Booking
from sampledb.models.equipment import Equipment
from sampledb.models.user import User
from sampledb.services.permission_service import PermissionService, get_permission_service

SLOT_CONSTRAINT_NAME = "ex_bookings_equipment_slot"
_EXCLUSION_VIOLATION_SQLSTATE = "23P01"

logger = structlog.get_logger(__name__)


class BookingServiceError(Exception):
    """Raised when a booking operation is rejected."""

    def __init__(self, detail: str, code: str, status_code: int) -> None:
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.status_code = status_code


@dataclass(frozen=True)
class BookingView:
    """Booking row joined with the owner's username."""

    id: int
    equipment_id: int
    user_id: int
    username: str
    start_time: datetime
    end_time: datetime
    purpose: str
    created_at: datetime


class _EquipmentLocks:
    """Per-equipment asyncio locks, dropped once nobody holds or waits on them."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, equipment_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(equipment_id, asyncio.Lock())
        self._users[equipment_id] = self._users.get(equipment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[equipment_id] -= 1
            if self._users[equipment_id] == 0:
                del self._users[equipment_id]
                del self._locks[equipment_id]


def _is_slot_violation(exc: IntegrityError) -> bool:
    """Return True when the insert tripped the booking exclusion constraint."""
    if getattr(exc.orig, "sqlstate", None) == _EXCLUSION_VIOLATION_SQLSTATE:
        return True
    return SLOT_CONSTRAINT_NAME in str(exc.orig)


class BookingService:
    """Reservation engine keeping equipment bookings free of overlaps.

    Intervals are half-open: ``[a, b)`` and ``[c, d)`` overlap iff ``a < d and c < b``,
    so a booking ending at 11:00 does not conflict with one starting at 11:00.

    Creation is serialized per equipment by an in-process lock and by locking the
    equipment row inside the transaction; the database exclusion constraint rejects
    any overlap that still slips through.
    """

    def __init__(
        self,
        permission_service: PermissionService,
        timezone: str = "UTC",
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._permissions = permission_service
        self._zone = ZoneInfo(timezone)
        self._now = now or (lambda: datetime.now(UTC))
        self._locks = _EquipmentLocks()

    def normalize_instant(self, value: datetime) -> datetime:
        """Return value as an aware UTC instant; naive values are local calendar time."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=self._zone)
        return value.astimezone(UTC)

    async def has_conflict(
        self,
        db_session: AsyncSession,
        equipment_id: int,
        start: datetime,
        end: datetime,
    ) -> bool:
        """Return True iff an existing booking on the equipment overlaps [start, end)."""
        start = self.normalize_instant(start)
        end = self.normalize_instant(end)
        statement = select(
            exists().where(
                Booking.equipment_id == equipment_id,
                Booking.start_time < end,
                Booking.end_time > start,
            )
        )
        result = await db_session.execute(statement)
        return bool(result.scalar())

    async def create_booking(
        self,
        db_session: AsyncSession,
        equipment_id: int,
        user_id: int,
        start: datetime,
        end: datetime,
        purpose: str,
    ) -> Booking:
        """Validate and persist a booking."""
        start = self.normalize_instant(start)
        end = self.normalize_instant(end)
        if end <= start:
            raise BookingServiceError("End time must be after start time.", "invalid_range", 400)

        async with self._locks.hold(equipment_id):
            try:
                equipment = await self._lock_equipment(db_session, equipment_id)
                if equipment is None:
                    raise BookingServiceError("Equipment not found.", "not_found", 404)
                if await self.has_conflict(db_session, equipment_id, start, end):
                    raise BookingServiceError("Time slot already booked.", "slot_taken", 409)
                if not await self._may_book(db_session, user_id, equipment_id):
                    raise BookingServiceError(
                        "You do not have access to this equipment.", "forbidden", 403
                    )
                if not purpose.strip():
                    raise BookingServiceError("Purpose is required.", "validation_error", 400)

                booking = Booking(
                    equipment_id=equipment_id,
                    user_id=user_id,
                    start_time=start,
                    end_time=end,
                    purpose=purpose.strip(),
                )
                db_session.add(booking)
                await db_session.flush()
            except BookingServiceError as exc:
                await db_session.rollback()
                logger.info(
                    "booking_rejected",
                    equipment_id=equipment_id,
                    user_id=user_id,
                    code=exc.code,
                )
                raise
            except IntegrityError as exc:
                await db_session.rollback()
                if _is_slot_violation(exc):
                    logger.info(
                        "booking_rejected",
                        equipment_id=equipment_id,
                        user_id=user_id,
                        code="slot_taken",
                    )
                    raise BookingServiceError(
                        "Time slot already booked.", "slot_taken", 409
                    ) from exc
                raise
            except Exception:
                await db_session.rollback()
                raise
            await db_session.commit()

        logger.info(
            "booking_created",
            booking_id=booking.id,
            equipment_id=equipment_id,
            user_id=user_id,
            start_time=start.isoformat(),
            end_time=end.isoformat(),
        )
        return booking

    async def delete_booking(
        self,
        db_session: AsyncSession,
        booking_id: int,
        requesting_user_id: int,
    ) -> None:
        """Delete a booking owned by the requesting user."""
        statement = select(Booking).where(Booking.id == booking_id).with_for_update()
        booking = (await db_session.execute(statement)).scalar_one_or_none()
        if booking is None:
            raise BookingServiceError("Booking not found.", "not_found", 404)
        if booking.user_id != requesting_user_id:
            raise BookingServiceError(
                "Not authorized to delete this booking.", "forbidden", 403
            )
        await db_session.delete(booking)
        await db_session.flush()
        await db_session.commit()
        logger.info("booking_deleted", booking_id=booking_id, user_id=requesting_user_id)

    async def list_bookings(
        self,
        db_session: AsyncSession,
        window_start: datetime,
        window_end: datetime,
    ) -> list[BookingView]:
        """Return bookings overlapping [window_start, window_end), ordered by start."""
        window_start = self.normalize_instant(window_start)
        window_end = self.normalize_instant(window_end)
        if window_end <= window_start:
            raise BookingServiceError("End time must be after start time.", "invalid_range", 400)
        statement = (
            select(Booking, User.username)
            .join(User, Booking.user_id == User.id)
            .where(Booking.start_time < window_end, Booking.end_time > window_start)
            .order_by(Booking.start_time, Booking.id)
        )
        result = await db_session.execute(statement)
        return [_to_view(booking, username) for booking, username in result.all()]

    async def list_user_bookings(self, db_session: AsyncSession, user_id: int) -> list[BookingView]:
        """Return the user's bookings that have not ended yet."""
        statement = (
            select(Booking, User.username)
            .join(User, Booking.user_id == User.id)
            .where(Booking.user_id == user_id, Booking.end_time >= self._now())
            .order_by(Booking.start_time, Booking.id)
        )
        result = await db_session.execute(statement)
        return [_to_view(booking, username) for booking, username in result.all()]

    async def _may_book(self, db_session: AsyncSession, user_id: int, equipment_id: int) -> bool:
        if await self._permissions.is_admin(db_session=db_session, user_id=user_id):
            return True
        return await self._permissions.has_permission(
            db_session=db_session, user_id=user_id, equipment_id=equipment_id
        )

    async def _lock_equipment(
        self, db_session: AsyncSession, equipment_id: int
    ) -> Equipment | None:
        """Fetch the equipment row with a row lock serializing concurrent bookings."""
        statement = select(Equipment).where(Equipment.id == equipment_id).with_for_update()
        result = await db_session.execute(statement)
        return result.scalar_one_or_none()


def _to_view(booking: Booking, username: str) -> BookingView:
    return BookingView(
        id=booking.id,
        equipment_id=booking.equipment_id,
        user_id=booking.user_id,
        username=username,
        start_time=booking.start_time,
        end_time=booking.end_time,
        purpose=booking.purpose,
        created_at=booking.created_at,
    )


@lru_cache
def get_booking_service() -> BookingService:
    """Create and cache booking service."""
    settings = get_settings()
    return BookingService(
        permission_service=get_permission_service(),
        timezone=settings.booking.timezone,
    )
