from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID

from loguru import logger

from guide_bookings import settings
from guide_bookings.crud import BookingCRUD, GuideCRUD, booking_crud, guide_crud
from guide_bookings.errors import GuideNotFound
from guide_bookings.models import Booking
from guide_bookings.timewindow import TimeWindow

DEFAULT_WORKING_HOURS = TimeWindow(
    time.fromisoformat(settings.WORKING_DAY_START),
    time.fromisoformat(settings.WORKING_DAY_END),
)
DEFAULT_SLOT_LENGTH = timedelta(minutes=settings.SLOT_MINUTES)


def window_of(booking: Booking) -> TimeWindow:
    return TimeWindow(booking.start_time, booking.end_time)


@dataclass(frozen=True)
class SlotSequence:
    """
    Fixed-length candidate slots within working hours that overlap none of the
    `blocked` windows. Iterating is lazy and may be repeated.

    A booking that only partially covers a slot still blocks the whole slot.
    """

    working_hours: TimeWindow
    slot_length: timedelta
    blocked: Sequence[TimeWindow]

    def __iter__(self) -> Iterator[TimeWindow]:
        cursor = datetime.combine(date.min, self.working_hours.start)
        day_end = datetime.combine(date.min, self.working_hours.end)
        while cursor + self.slot_length <= day_end:
            slot = TimeWindow(cursor.time(), (cursor + self.slot_length).time())
            if not any(slot.overlaps(b) for b in self.blocked):
                yield slot
            cursor += self.slot_length


class AvailabilityEngine:
    def __init__(
        self,
        bookings: BookingCRUD = booking_crud,
        guides: GuideCRUD = guide_crud,
    ) -> None:
        self.bookings = bookings
        self.guides = guides

    async def active_windows(
        self, guide_id: UUID, on: date, exclude: UUID | None = None
    ) -> list[TimeWindow]:
        active = await self.bookings.list_active_for_guide(guide_id, on, exclude_id=exclude)
        return [window_of(b) for b in active]

    async def conflict_exists(
        self,
        guide_id: UUID,
        on: date,
        window: TimeWindow,
        exclude: UUID | None = None,
    ) -> bool:
        for taken in await self.active_windows(guide_id, on, exclude):
            if window.overlaps(taken):
                logger.debug(
                    "Window {} conflicts with {} for guide_id={} on {}",
                    window,
                    taken,
                    guide_id,
                    on,
                )
                return True
        return False

    async def list_available_slots(
        self,
        guide_id: UUID,
        on: date,
        slot_length: timedelta = DEFAULT_SLOT_LENGTH,
        working_hours: TimeWindow = DEFAULT_WORKING_HOURS,
    ) -> SlotSequence:
        if slot_length <= timedelta(0):
            raise ValueError("slot_length must be positive")
        if await self.guides.get_guide(guide_id) is None:
            raise GuideNotFound()
        return SlotSequence(
            working_hours=working_hours,
            slot_length=slot_length,
            blocked=tuple(await self.active_windows(guide_id, on)),
        )
