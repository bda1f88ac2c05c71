"""
Tests for AvailabilityEngine and SlotSequence.
Repositories are replaced with mocks; coroutines are driven with asyncio.run.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from guide_bookings.availability import AvailabilityEngine, SlotSequence
from guide_bookings.errors import GuideNotFound
from guide_bookings.timewindow import TimeWindow

from .factories import BOOKING_DATE, BOOKING_ID, GUIDE_ID, at

WORKING_DAY = TimeWindow(at("09:00"), at("18:00"))
ONE_HOUR = timedelta(hours=1)


def window(start: str, end: str) -> TimeWindow:
    return TimeWindow(at(start), at(end))


def booking_row(start: str, end: str) -> SimpleNamespace:
    return SimpleNamespace(start_time=at(start), end_time=at(end))


def stored_row(start: str, end: str) -> SimpleNamespace:
    """A row as read back from the database: times carry the default timezone."""
    return SimpleNamespace(
        start_time=at(start).replace(tzinfo=timezone.utc),
        end_time=at(end).replace(tzinfo=timezone.utc),
    )


def make_engine(rows: list | None = None, guide_exists: bool = True) -> AvailabilityEngine:
    bookings = MagicMock()
    bookings.list_active_for_guide = AsyncMock(return_value=rows or [])
    guides = MagicMock()
    guides.get_guide = AsyncMock(return_value=object() if guide_exists else None)
    return AvailabilityEngine(bookings=bookings, guides=guides)


def starts(slots) -> list[str]:
    return [f"{s.start:%H:%M}" for s in slots]


class TestSlotSequence:
    def test_free_day_offers_nine_hour_slots(self):
        slots = SlotSequence(WORKING_DAY, ONE_HOUR, blocked=())
        assert starts(slots) == [f"{h:02d}:00" for h in range(9, 18)]

    def test_last_slot_ends_at_close(self):
        slots = list(SlotSequence(WORKING_DAY, ONE_HOUR, blocked=()))
        assert slots[-1] == window("17:00", "18:00")

    def test_partially_covered_hours_are_blocked(self):
        slots = SlotSequence(WORKING_DAY, ONE_HOUR, blocked=(window("10:30", "11:30"),))
        listed = starts(slots)
        assert "10:00" not in listed
        assert "11:00" not in listed
        assert "09:00" in listed
        assert "12:00" in listed

    def test_booking_ending_mid_hour_blocks_that_hour(self):
        slots = SlotSequence(WORKING_DAY, ONE_HOUR, blocked=(window("09:00", "10:15"),))
        assert starts(slots)[:1] == ["11:00"]

    def test_booking_ending_on_boundary_does_not_block_next_hour(self):
        slots = SlotSequence(WORKING_DAY, ONE_HOUR, blocked=(window("09:00", "10:00"),))
        assert starts(slots)[0] == "10:00"

    def test_sequence_is_restartable(self):
        slots = SlotSequence(WORKING_DAY, ONE_HOUR, blocked=(window("13:00", "15:00"),))
        assert list(slots) == list(slots)

    def test_sequence_is_lazy(self):
        slots = iter(SlotSequence(WORKING_DAY, ONE_HOUR, blocked=()))
        assert next(slots) == window("09:00", "10:00")

    def test_custom_slot_length(self):
        slots = SlotSequence(window("09:00", "11:00"), timedelta(minutes=30), blocked=())
        assert starts(slots) == ["09:00", "09:30", "10:00", "10:30"]

    def test_slot_not_fitting_before_close_is_dropped(self):
        slots = SlotSequence(window("09:00", "11:30"), ONE_HOUR, blocked=())
        assert starts(slots) == ["09:00", "10:00"]


class TestConflictExists:
    def test_no_bookings_no_conflict(self):
        engine = make_engine()
        assert not asyncio.run(
            engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("10:00", "11:00"))
        )

    def test_overlap_is_conflict(self):
        engine = make_engine([booking_row("10:00", "12:00")])
        assert asyncio.run(
            engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("11:00", "13:00"))
        )

    def test_adjacent_is_not_conflict(self):
        engine = make_engine([booking_row("09:00", "10:00")])
        assert not asyncio.run(
            engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("10:00", "11:00"))
        )

    def test_request_covering_existing_booking_is_conflict(self):
        engine = make_engine([booking_row("10:15", "10:45")])
        assert asyncio.run(
            engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("10:00", "11:00"))
        )

    def test_queries_guide_and_date(self):
        engine = make_engine()
        asyncio.run(engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("10:00", "11:00")))
        engine.bookings.list_active_for_guide.assert_awaited_once_with(
            GUIDE_ID, BOOKING_DATE, exclude_id=None
        )

    def test_excluded_booking_forwarded(self):
        engine = make_engine()
        asyncio.run(
            engine.conflict_exists(
                GUIDE_ID, BOOKING_DATE, window("10:00", "11:00"), exclude=BOOKING_ID
            )
        )
        engine.bookings.list_active_for_guide.assert_awaited_once_with(
            GUIDE_ID, BOOKING_DATE, exclude_id=BOOKING_ID
        )

    def test_stored_times_with_timezone_compare_to_plain_times(self):
        engine = make_engine([stored_row("10:00", "12:00")])
        assert asyncio.run(
            engine.conflict_exists(GUIDE_ID, BOOKING_DATE, window("11:00", "13:00"))
        )


class TestListAvailableSlots:
    def test_unknown_guide_raises(self):
        engine = make_engine(guide_exists=False)
        with pytest.raises(GuideNotFound):
            asyncio.run(engine.list_available_slots(GUIDE_ID, BOOKING_DATE))

    def test_active_bookings_are_excluded(self):
        engine = make_engine([booking_row("10:30", "11:30")])
        slots = asyncio.run(engine.list_available_slots(GUIDE_ID, BOOKING_DATE))
        listed = starts(slots)
        assert listed == ["09:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00"]

    def test_stored_bookings_with_timezone_block_slots(self):
        engine = make_engine([stored_row("10:30", "11:30"), stored_row("14:00", "15:00")])
        slots = asyncio.run(engine.list_available_slots(GUIDE_ID, BOOKING_DATE))
        assert starts(slots) == ["09:00", "12:00", "13:00", "15:00", "16:00", "17:00"]

    def test_non_positive_slot_length_rejected(self):
        engine = make_engine()
        with pytest.raises(ValueError):
            asyncio.run(
                engine.list_available_slots(GUIDE_ID, BOOKING_DATE, slot_length=timedelta(0))
            )
