"""
Booking status lifecycle and who may drive it.

The caller's relationship to a booking is resolved once per request into a
`Relationship`, then every decision is a lookup in `TRANSITIONS`:

    relationship -> current status -> statuses it may move the booking to
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, TypeVar
from uuid import UUID

from guide_bookings.errors import IllegalTransition, Unauthorized
from guide_bookings.models import BookingStatus


class Role(StrEnum):
    USER = "user"
    GUIDE = "guide"
    ADMIN = "admin"


class Relationship(StrEnum):
    ADMIN = "admin"
    OWNER = "owner"  # made the booking
    GUIDE_OWNER = "guide_owner"  # owns the guide profile being booked
    NONE = "none"


class Actor(Protocol):
    id: UUID
    role: Role


class BookingLike(Protocol):
    user_id: UUID
    guide_user_id: UUID
    status: BookingStatus


B = TypeVar("B", bound=BookingLike)

_ALL = frozenset(BookingStatus)
_NOTHING: frozenset[BookingStatus] = frozenset()

PENDING = BookingStatus.PENDING
CONFIRMED = BookingStatus.CONFIRMED
CANCELLED = BookingStatus.CANCELLED
COMPLETED = BookingStatus.COMPLETED

TRANSITIONS: dict[Relationship, dict[BookingStatus, frozenset[BookingStatus]]] = {
    Relationship.ADMIN: {status: _ALL for status in BookingStatus},
    Relationship.OWNER: {
        PENDING: frozenset({CANCELLED}),
        CONFIRMED: _NOTHING,
        CANCELLED: _NOTHING,
        COMPLETED: _NOTHING,
    },
    Relationship.GUIDE_OWNER: {
        PENDING: frozenset({CONFIRMED, CANCELLED}),
        CONFIRMED: frozenset({COMPLETED, CANCELLED}),
        CANCELLED: _NOTHING,
        COMPLETED: _NOTHING,
    },
}

# Statuses in which each relationship may edit notes without changing status
NOTES_EDITABLE: dict[Relationship, frozenset[BookingStatus]] = {
    Relationship.ADMIN: _ALL,
    Relationship.OWNER: frozenset({PENDING}),
    Relationship.GUIDE_OWNER: _ALL,
}


def resolve_relationship(actor: Actor, booking: BookingLike) -> Relationship:
    if actor.role == Role.ADMIN:
        return Relationship.ADMIN
    if actor.id == booking.user_id:
        return Relationship.OWNER
    if actor.id == booking.guide_user_id:
        return Relationship.GUIDE_OWNER
    return Relationship.NONE


def allowed_targets(relationship: Relationship, current: BookingStatus) -> frozenset[BookingStatus]:
    if relationship == Relationship.NONE:
        raise Unauthorized("Unauthorized to update this booking")
    return TRANSITIONS[relationship][current]


def transition(
    booking: B,
    relationship: Relationship,
    target: BookingStatus | None,
    notes: str | None = None,
) -> B:
    """
    Return a copy of `booking` moved to `target` (and carrying `notes` if given).
    `target=None` is a notes-only edit. `booking` itself is left untouched.
    """
    current = BookingStatus(booking.status)

    if target is None:
        if relationship == Relationship.NONE:
            raise Unauthorized("Unauthorized to update this booking")
        if current not in NOTES_EDITABLE[relationship]:
            raise IllegalTransition(f"Cannot modify booking with status '{current}'")
        target = current
    else:
        allowed = allowed_targets(relationship, current)
        if target not in allowed:
            raise IllegalTransition(
                f"Cannot transition from '{current}' to '{target}' as {relationship}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

    changes: dict = {"status": target}
    if notes is not None:
        changes["notes"] = notes
    return booking.model_copy(update=changes)  # type: ignore[attr-defined]
