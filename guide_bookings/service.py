from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import date, time
from uuid import UUID

from loguru import logger
from tortoise.exceptions import (
    DBConnectionError,
    OperationalError,
    TransactionManagementError,
)
from tortoise.transactions import in_transaction

from guide_bookings import pricing
from guide_bookings.availability import AvailabilityEngine, SlotSequence
from guide_bookings.crud import BookingCRUD, GuideCRUD, booking_crud, guide_crud
from guide_bookings.errors import (
    BookingNotFound,
    ConcurrentModification,
    GuideNotApproved,
    GuideNotFound,
    InvalidState,
    SlotUnavailable,
    Unauthorized,
    Unavailable,
    ValidationError,
)
from guide_bookings.models import BookingStatus
from guide_bookings.schemas import NOTES_MAX_LENGTH, BookingFilters, BookingResponse
from guide_bookings.state_machine import (
    Actor,
    Relationship,
    Role,
    resolve_relationship,
    transition,
)
from guide_bookings.timewindow import TimeWindow

_DELETABLE = {BookingStatus.PENDING, BookingStatus.CANCELLED}

# Compare-and-swap attempts for a status write: the first try plus one retry
_CAS_ATTEMPTS = 2


@asynccontextmanager
async def _storage(operation: str) -> AsyncIterator[None]:
    """Surface infrastructure failures from the ORM as `Unavailable`."""
    try:
        yield
    except (OperationalError, DBConnectionError, TransactionManagementError) as exc:
        logger.opt(exception=exc).error("Storage failure during {}", operation)
        raise Unavailable() from exc


def _to_response(inst) -> BookingResponse:
    return BookingResponse.model_validate(inst, from_attributes=True)


class BookingService:
    def __init__(
        self,
        bookings: BookingCRUD = booking_crud,
        guides: GuideCRUD = guide_crud,
        availability: AvailabilityEngine | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.bookings = bookings
        self.guides = guides
        self.availability = availability or AvailabilityEngine(bookings, guides)
        self.today = today

    def require_future_date(self, on: date, field: str = "date") -> None:
        if on <= self.today():
            raise ValidationError(f"{field} must be a date after today")

    @staticmethod
    def _check_notes(notes: str | None) -> None:
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise ValidationError(f"notes may not exceed {NOTES_MAX_LENGTH} characters")

    async def create_booking(
        self,
        actor: Actor,
        guide_id: UUID,
        booking_date: date,
        start_time: time,
        end_time: time,
        notes: str | None = None,
    ) -> BookingResponse:
        self.require_future_date(booking_date, "booking_date")
        window = TimeWindow(start_time, end_time)
        self._check_notes(notes)

        # Atomic check-then-insert: the guide row lock prevents double-booking
        async with _storage("create_booking"), in_transaction():
            guide = await self.guides.get_guide(guide_id, for_update=True)
            if guide is None:
                raise GuideNotFound()
            if not guide.is_approved:
                raise GuideNotApproved()

            if await self.availability.conflict_exists(guide_id, booking_date, window):
                raise SlotUnavailable()

            total_price = pricing.compute(window, guide.hourly_rate)
            inst = await self.bookings.create_booking(
                guide=guide,
                user_id=actor.id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                total_price=total_price,
                notes=notes,
            )

        logger.info(
            "Booking {} created: guide_id={} date={} window={} price={}",
            inst.id,
            guide_id,
            booking_date,
            window,
            total_price,
        )
        return _to_response(inst)

    async def _load(self, booking_id: UUID) -> BookingResponse:
        inst = await self.bookings.get_booking(booking_id)
        if inst is None:
            raise BookingNotFound()
        return _to_response(inst)

    async def get_booking(self, actor: Actor, booking_id: UUID) -> BookingResponse:
        async with _storage("get_booking"):
            booking = await self._load(booking_id)
        if resolve_relationship(actor, booking) == Relationship.NONE:
            raise Unauthorized("Unauthorized to view this booking")
        return booking

    async def list_bookings(
        self, actor: Actor, filters: BookingFilters
    ) -> tuple[list[BookingResponse], int]:
        async with _storage("list_bookings"):
            if actor.role == Role.ADMIN:
                bookings, total = await self.bookings.list_bookings(filters)
            elif actor.role == Role.GUIDE:
                guide = await self.guides.get_guide_by_user(actor.id)
                if guide is None:
                    return [], 0
                bookings, total = await self.bookings.list_bookings(
                    filters, guide_id=guide.id
                )
            else:
                bookings, total = await self.bookings.list_bookings(
                    filters, user_id=actor.id
                )
        return [_to_response(b) for b in bookings], total

    async def _write_status(
        self, booking: BookingResponse, target: BookingStatus, notes: str | None
    ) -> bool:
        reactivating = (
            booking.status == BookingStatus.CANCELLED and target != BookingStatus.CANCELLED
        )
        if not reactivating:
            return await self.bookings.compare_and_set_status(
                booking.id, booking.status, target, notes
            )

        # A cancelled booking that becomes active again re-occupies its window
        async with in_transaction():
            await self.guides.get_guide(booking.guide_id, for_update=True)
            window = TimeWindow(booking.start_time, booking.end_time)
            if await self.availability.conflict_exists(
                booking.guide_id, booking.booking_date, window, exclude=booking.id
            ):
                raise SlotUnavailable()
            return await self.bookings.compare_and_set_status(
                booking.id, booking.status, target, notes
            )

    async def update_booking_status(
        self,
        actor: Actor,
        booking_id: UUID,
        target_status: BookingStatus | None,
        notes: str | None = None,
    ) -> BookingResponse:
        self._check_notes(notes)
        async with _storage("update_booking_status"):
            for attempt in range(1, _CAS_ATTEMPTS + 1):
                booking = await self._load(booking_id)
                relationship = resolve_relationship(actor, booking)
                updated = transition(booking, relationship, target_status, notes)

                if await self._write_status(booking, updated.status, notes):
                    break
                logger.warning(
                    "Status of booking {} changed concurrently (attempt {}/{})",
                    booking_id,
                    attempt,
                    _CAS_ATTEMPTS,
                )
            else:
                raise ConcurrentModification()

            result = await self._load(booking_id)

        logger.info(
            "Booking {} moved {} -> {} by {} ({})",
            booking_id,
            booking.status,
            result.status,
            actor.id,
            relationship,
        )
        return result

    async def delete_booking(self, actor: Actor, booking_id: UUID) -> BookingResponse:
        """Delete a booking and return the removed record."""
        async with _storage("delete_booking"), in_transaction():
            inst = await self.bookings.get_booking(booking_id, for_update=True)
            if inst is None:
                raise BookingNotFound()
            booking = _to_response(inst)

            relationship = resolve_relationship(actor, booking)
            if relationship not in (Relationship.ADMIN, Relationship.OWNER):
                raise Unauthorized("Unauthorized to delete this booking")
            if booking.status not in _DELETABLE:
                raise InvalidState(
                    f"Cannot delete booking with status '{booking.status}'"
                )

            await self.bookings.delete_booking(booking_id)

        logger.info("Booking {} deleted by {} ({})", booking_id, actor.id, relationship)
        return booking

    async def get_available_slots(self, guide_id: UUID, on: date) -> SlotSequence:
        self.require_future_date(on)
        async with _storage("get_available_slots"):
            return await self.availability.list_available_slots(guide_id, on)


booking_service = BookingService()
