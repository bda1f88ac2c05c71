"""
Booking domain errors and their HTTP rendering.
Raised by the service layer, translated to responses by register_error_handlers().
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class BookingError(Exception):
    """Base class for all expected booking outcomes that are not a success."""

    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Booking request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation errors"


class InvalidWindow(ValidationError):
    code = "invalid_window"
    default_message = "end_time must be after start_time"


class GuideNotFound(BookingError):
    code = "guide_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Guide not found"


class GuideNotApproved(BookingError):
    code = "guide_not_approved"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "This guide is not approved for bookings"


class SlotUnavailable(BookingError):
    code = "slot_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Guide is not available at this time"


class BookingNotFound(BookingError):
    code = "booking_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Booking not found"


class Unauthorized(BookingError):
    code = "unauthorized"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized to access this booking"


class IllegalTransition(BookingError):
    code = "illegal_transition"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Status transition not allowed"


class InvalidState(BookingError):
    code = "invalid_state"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Operation not allowed with the current booking status"


class ConcurrentModification(BookingError):
    code = "concurrent_modification"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Booking was modified concurrently, retry the request"


class Unavailable(BookingError):
    code = "unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Booking storage is temporarily unavailable"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )
