from decimal import ROUND_HALF_UP, Decimal

from guide_bookings.timewindow import TimeWindow

CENT = Decimal("0.01")


def compute(window: TimeWindow, hourly_rate: Decimal) -> Decimal:
    """Total price for `window` at `hourly_rate`, rounded to cents."""
    duration_hours = Decimal(str(window.duration.total_seconds())) / Decimal(3600)
    return (duration_hours * Decimal(hourly_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
