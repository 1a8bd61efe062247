from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from conftest import MONDAY, VENUE_ID, at, weekly
from domain.booking.availability import AvailabilityEngine, intervals_overlap
from domain.booking.entity import Booking, BookingStatus
from domain.booking.schedule import WeeklySchedule, parse_clock
from domain.common.exceptions import (
    BookingConflictException,
    DomainValidationException,
    ScheduleMismatchException,
)


def _booking(start, end, *, id=1, status=BookingStatus.PENDING) -> Booking:
    return Booking(
        id=id,
        venue_id=VENUE_ID,
        client_id=3,
        owner_id=7,
        start_at=start,
        end_at=end,
        price=Decimal("1000"),
        status=status,
    )


def _spans(slots):
    return [(s.start_at.hour, s.start_at.minute, s.end_at.hour, s.end_at.minute) for s in slots]


def test_overlap_is_half_open():
    a, b = at(MONDAY, 10), at(MONDAY, 11)
    assert intervals_overlap(a, b, at(MONDAY, 10, 30), at(MONDAY, 12))
    assert intervals_overlap(a, b, at(MONDAY, 9), at(MONDAY, 10, 30))
    assert intervals_overlap(a, b, at(MONDAY, 9), at(MONDAY, 12))
    assert intervals_overlap(a, b, at(MONDAY, 10, 15), at(MONDAY, 10, 45))
    assert not intervals_overlap(a, b, b, at(MONDAY, 12))
    assert not intervals_overlap(a, b, at(MONDAY, 9), a)


def test_free_slots_whole_window_when_no_bookings(availability_engine):
    schedule = weekly("08:00", "22:00", closed=())
    slots = availability_engine.free_slots(schedule, MONDAY, [])
    assert _spans(slots) == [(8, 0, 22, 0)]
    assert slots[0].duration == timedelta(hours=14)


def test_free_slots_split_around_booking(availability_engine):
    slots = availability_engine.free_slots(weekly(), MONDAY, [_booking(at(MONDAY, 10), at(MONDAY, 11))])
    assert _spans(slots) == [(9, 0, 10, 0), (11, 0, 21, 0)]


def test_free_slots_closed_day(availability_engine):
    sunday = MONDAY - timedelta(days=1)
    assert availability_engine.free_slots(weekly(), sunday, []) == []


def test_free_slots_merges_overlapping_and_adjacent_bookings(availability_engine):
    bookings = [
        _booking(at(MONDAY, 12), at(MONDAY, 13), id=3),
        _booking(at(MONDAY, 10), at(MONDAY, 11), id=1),
        _booking(at(MONDAY, 10, 30), at(MONDAY, 12), id=2),
    ]
    slots = availability_engine.free_slots(weekly(), MONDAY, bookings)
    assert _spans(slots) == [(9, 0, 10, 0), (13, 0, 21, 0)]


def test_free_slots_drops_gaps_shorter_than_minimum(availability_engine):
    bookings = [
        _booking(at(MONDAY, 10), at(MONDAY, 11), id=1),
        _booking(at(MONDAY, 11, 30), at(MONDAY, 13), id=2),
    ]
    slots = availability_engine.free_slots(weekly(), MONDAY, bookings)
    assert _spans(slots) == [(9, 0, 10, 0), (13, 0, 21, 0)]


def test_free_slots_ignores_cancelled_and_clips_to_window(availability_engine):
    bookings = [
        _booking(at(MONDAY, 10), at(MONDAY, 12), id=1, status=BookingStatus.CANCELLED),
        _booking(at(MONDAY, 20), at(MONDAY, 22), id=2),
    ]
    slots = availability_engine.free_slots(weekly(), MONDAY, bookings)
    assert _spans(slots) == [(9, 0, 20, 0)]


def test_free_slots_uses_venue_timezone():
    tz = ZoneInfo("Europe/Moscow")
    engine = AvailabilityEngine(min_duration=timedelta(hours=1), tz=tz)
    # 10:00-11:00 莫斯科时间 = 07:00-08:00 UTC
    booking = _booking(
        datetime(2030, 1, 7, 7, 0, tzinfo=timezone.utc),
        datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc),
    )
    slots = engine.free_slots(weekly(), MONDAY, [booking])
    assert _spans(slots) == [(9, 0, 10, 0), (11, 0, 21, 0)]
    assert slots[0].start_at.tzinfo == tz


def test_validate_candidate_accepts_touching_interval(availability_engine):
    existing = [_booking(at(MONDAY, 10), at(MONDAY, 11))]
    availability_engine.validate_candidate(
        weekly(), at(MONDAY, 11), at(MONDAY, 12), existing, venue_id=VENUE_ID
    )
    availability_engine.validate_candidate(
        weekly(), at(MONDAY, 9), at(MONDAY, 10), existing, venue_id=VENUE_ID
    )


@pytest.mark.parametrize(
    "start,end",
    [
        ((10, 30), (11, 30)),
        ((9, 0), (10, 30)),
        ((9, 0), (12, 0)),
        ((10, 0), (11, 0)),
    ],
)
def test_validate_candidate_rejects_overlap(availability_engine, start, end):
    existing = [_booking(at(MONDAY, 10), at(MONDAY, 11), id=42)]
    with pytest.raises(BookingConflictException) as exc_info:
        availability_engine.validate_candidate(
            weekly(), at(MONDAY, *start), at(MONDAY, *end), existing, venue_id=VENUE_ID
        )
    assert exc_info.value.details["conflicting_booking_id"] == 42


def test_validate_candidate_excludes_itself(availability_engine):
    existing = [_booking(at(MONDAY, 10), at(MONDAY, 12), id=5)]
    availability_engine.validate_candidate(
        weekly(), at(MONDAY, 10, 30), at(MONDAY, 12, 30), existing, venue_id=VENUE_ID, exclude_id=5
    )


def test_validate_candidate_ignores_cancelled(availability_engine):
    existing = [_booking(at(MONDAY, 10), at(MONDAY, 11), status=BookingStatus.CANCELLED)]
    availability_engine.validate_candidate(
        weekly(), at(MONDAY, 10), at(MONDAY, 11), existing, venue_id=VENUE_ID
    )


@pytest.mark.parametrize(
    "start,end",
    [
        (at(MONDAY, 8), at(MONDAY, 10)),
        (at(MONDAY, 20), at(MONDAY, 22)),
        (at(MONDAY, 22), at(MONDAY + timedelta(days=1), 1)),
        (at(MONDAY - timedelta(days=1), 10), at(MONDAY - timedelta(days=1), 11)),
        (at(MONDAY, 10), at(MONDAY, 10, 30)),
    ],
    ids=["before-open", "after-close", "crosses-midnight", "closed-day", "too-short"],
)
def test_validate_candidate_schedule_mismatch(availability_engine, start, end):
    with pytest.raises(ScheduleMismatchException):
        availability_engine.validate_candidate(weekly(), start, end, [], venue_id=VENUE_ID)


def test_day_bounds_and_local_date():
    engine = AvailabilityEngine(tz=ZoneInfo("Europe/Moscow"))
    moment = datetime(2030, 1, 6, 22, 0, tzinfo=timezone.utc)
    assert engine.local_date(moment) == date(2030, 1, 7)
    start, end = engine.day_bounds(date(2030, 1, 7))
    assert start.astimezone(timezone.utc) == datetime(2030, 1, 6, 21, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)


def test_parse_clock_accepts_rfc3339_and_seconds():
    assert parse_clock("0000-01-01T09:30:00Z", field_name="t").strftime("%H:%M") == "09:30"
    assert parse_clock("21:00:00", field_name="t").strftime("%H:%M") == "21:00"
    with pytest.raises(DomainValidationException):
        parse_clock("25:00", field_name="t")


def test_weekly_schedule_validation():
    with pytest.raises(DomainValidationException):
        WeeklySchedule.from_dict({"monday": {"enabled": True, "start_time": "21:00", "end_time": "09:00"}})
    schedule = WeeklySchedule.from_dict({"monday": {"enabled": False, "start_time": "09:00"}})
    assert not schedule.for_weekday(0).enabled
