from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, status
from loguru import logger

from guide_bookings.cache import slots_cache
from guide_bookings.deps import (
    CurrentUser,
    UsersClient,
    get_current_user,
    get_users_client,
)
from guide_bookings.schemas import (
    AvailableSlots,
    BookingCreate,
    BookingEnriched,
    BookingFilters,
    BookingPage,
    BookingResponse,
    BookingUpdate,
    TimeSlot,
)
from guide_bookings.service import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Enrichment helper
# ---------------------------------------------------------------------------


async def _enrich(
    bookings: list,
    current_user: CurrentUser,
    users_client: UsersClient,
) -> list[BookingEnriched]:
    """
    Convert booking objects into BookingEnriched by fetching traveler and guide
    names from users-ms in one bulk call. Degrades to None names on error.
    """
    if not bookings:
        return []

    parsed = [BookingResponse.model_validate(b, from_attributes=True) for b in bookings]
    user_ids = {b.user_id for b in parsed} | {b.guide_user_id for b in parsed}
    users_raw = await users_client.get_by_ids(user_ids, current_user)

    user_map: dict[str, dict] = {
        u["id"]: {"username": u.get("username"), "full_name": u.get("full_name")}
        for u in users_raw
    }

    result = []
    for b in parsed:
        customer = user_map.get(str(b.user_id), {})
        guide = user_map.get(str(b.guide_user_id), {})
        result.append(
            BookingEnriched(
                **b.model_dump(),
                customer_username=customer.get("username"),
                customer_full_name=customer.get("full_name"),
                guide_username=guide.get("username"),
                guide_full_name=guide.get("full_name"),
            )
        )
    return result


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/slots", response_model=AvailableSlots)
async def get_available_slots(
    guide_id: UUID,
    date: date,
    _: CurrentUser = Depends(get_current_user),
) -> AvailableSlots:
    """
    Free one-hour slots of a guide on a date, within working hours.
    Any authenticated user can call this; the response contains NO user identity.
    """
    booking_service.require_future_date(date)
    slots = await slots_cache.get(guide_id, date)
    if slots is not None:
        logger.debug("Cache hit for slots: guide_id={} date={}", guide_id, date)
    else:
        logger.debug("Cache miss for slots: guide_id={} date={}", guide_id, date)
        sequence = await booking_service.get_available_slots(guide_id, date)
        slots = [TimeSlot(start_time=w.start, end_time=w.end) for w in sequence]
        await slots_cache.set(guide_id, date, slots)

    return AvailableSlots(guide_id=guide_id, booking_date=date, available_slots=slots)


@router.get("/", response_model=BookingPage)
async def list_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
    users_client: UsersClient = Depends(get_users_client),
) -> BookingPage:
    bookings, total = await booking_service.list_bookings(current_user, filters)
    return BookingPage(
        items=await _enrich(bookings, current_user, users_client),
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    booking = await booking_service.create_booking(
        current_user,
        guide_id=payload.guide_id,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        notes=payload.notes,
    )
    await slots_cache.invalidate(payload.guide_id, payload.booking_date)
    return booking


@router.get("/{booking_id}", response_model=BookingEnriched)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    users_client: UsersClient = Depends(get_users_client),
) -> BookingEnriched:
    booking = await booking_service.get_booking(current_user, booking_id)
    results = await _enrich([booking], current_user, users_client)
    return results[0]


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    updated = await booking_service.update_booking_status(
        current_user, booking_id, payload.status, payload.notes
    )
    await slots_cache.invalidate(updated.guide_id, updated.booking_date)
    return updated


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    deleted = await booking_service.delete_booking(current_user, booking_id)
    await slots_cache.invalidate(deleted.guide_id, deleted.booking_date)
