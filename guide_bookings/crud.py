from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from tortoise import timezone

from guide_bookings.models import Booking, BookingStatus, Guide
from guide_bookings.schemas import BookingFilters


class GuideCRUD:
    """Read-only guide directory: the booking core never writes guides."""

    async def get_guide(self, guide_id: UUID, for_update: bool = False) -> Guide | None:
        qs = Guide.filter(id=guide_id)
        if for_update:
            # Serialises concurrent bookings of the same guide
            qs = qs.select_for_update()
        return await qs.first()

    async def get_guide_by_user(self, user_id: UUID) -> Guide | None:
        return await Guide.get_or_none(user_id=user_id)


class BookingCRUD:
    async def list_active_for_guide(
        self, guide_id: UUID, on: date, exclude_id: UUID | None = None
    ) -> list[Booking]:
        """Non-cancelled bookings of a guide on a date, optionally minus one booking."""
        qs = Booking.filter(guide_id=guide_id, booking_date=on).exclude(
            status=BookingStatus.CANCELLED
        )
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return await qs

    async def create_booking(
        self,
        guide: Guide,
        user_id: UUID,
        booking_date: date,
        start_time: time,
        end_time: time,
        total_price: Decimal,
        notes: str | None,
    ) -> Booking:
        return await Booking.create(
            guide=guide,
            guide_user_id=guide.user_id,
            user_id=user_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            total_price=total_price,
            status=BookingStatus.PENDING,
            notes=notes,
        )

    async def get_booking(self, booking_id: UUID, for_update: bool = False) -> Booking | None:
        qs = Booking.filter(id=booking_id)
        if for_update:
            qs = qs.select_for_update()
        return await qs.first()

    async def list_bookings(
        self,
        filters: BookingFilters,
        user_id: UUID | None = None,
        guide_id: UUID | None = None,
    ) -> tuple[list[Booking], int]:
        qs = Booking.all()

        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if guide_id is not None:
            qs = qs.filter(guide_id=guide_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)
        if filters.start_date is not None:
            qs = qs.filter(booking_date__gte=filters.start_date)
        if filters.end_date is not None:
            qs = qs.filter(booking_date__lte=filters.end_date)

        total = await qs.count()

        offset = (filters.page - 1) * filters.page_size
        bookings = (
            await qs.order_by("-booking_date", "-start_time")
            .offset(offset)
            .limit(filters.page_size)
        )
        return bookings, total

    async def compare_and_set_status(
        self,
        booking_id: UUID,
        expected: BookingStatus,
        new_status: BookingStatus,
        notes: str | None = None,
    ) -> bool:
        """
        Write `new_status` only if the stored status still equals `expected`.
        Returns False when another writer got there first (or the row is gone).
        """
        updates: dict = {"status": new_status, "updated_at": timezone.now()}
        if notes is not None:
            updates["notes"] = notes
        updated = await Booking.filter(id=booking_id, status=expected).update(**updates)
        return updated > 0

    async def delete_booking(self, booking_id: UUID) -> bool:
        deleted = await Booking.filter(id=booking_id).delete()
        return deleted > 0


booking_crud = BookingCRUD()
guide_crud = GuideCRUD()
