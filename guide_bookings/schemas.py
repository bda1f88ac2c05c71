from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from guide_bookings.models import BookingStatus
from guide_bookings.pricing import CENT

NOTES_MAX_LENGTH = 500

__all__ = [
    "AvailableSlots",
    "BookingCreate",
    "BookingEnriched",
    "BookingFilters",
    "BookingPage",
    "BookingResponse",
    "BookingStatus",
    "BookingUpdate",
    "TimeSlot",
]


class BookingCreate(BaseModel):
    guide_id: UUID
    booking_date: date
    start_time: time
    end_time: time
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)


class BookingUpdate(BaseModel):
    """Status transition and/or notes edit. Omitted status keeps the current one."""

    status: BookingStatus | None = None
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    guide_id: UUID
    guide_user_id: UUID
    booking_date: date
    start_time: time
    end_time: time
    total_price: Decimal
    status: BookingStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_time", "end_time")
    @classmethod
    def drop_tzinfo(cls, value: time) -> time:
        # Stored times come back with the default timezone attached
        return value.replace(tzinfo=None)

    @field_validator("total_price")
    @classmethod
    def to_cents(cls, value: Decimal) -> Decimal:
        # The ORM normalizes decimals (40.00 -> 4E+1)
        return value.quantize(CENT)


class BookingEnriched(BookingResponse):
    customer_username: str | None = None
    customer_full_name: str | None = None
    guide_username: str | None = None
    guide_full_name: str | None = None


class BookingPage(BaseModel):
    items: list[BookingEnriched]
    total: int
    page: int
    page_size: int


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    status: BookingStatus | None = None
    start_date: date | None = None  # inclusive
    end_date: date | None = None  # inclusive

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


class TimeSlot(BaseModel):
    """A free window offered for booking; reveals no user identity."""

    start_time: time
    end_time: time

    model_config = ConfigDict(from_attributes=True)


class AvailableSlots(BaseModel):
    guide_id: UUID
    booking_date: date
    available_slots: list[TimeSlot]
