"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date, datetime, time, timedelta, timezone
from typing import List

import pytest
import pytest_asyncio

from application.ports.events import EventPublishError
from domain.booking.availability import AvailabilityEngine
from domain.booking.events import BookingCancelled, BookingCreated
from domain.booking.schedule import VenueSchedule, WeeklySchedule
from domain.common.exceptions import VenueNotFoundException
from infrastructure.database import build_engine, create_tables
from infrastructure.models import payment_metadata, reservation_metadata
from infrastructure.wiring import booking_uow_factory, payment_uow_factory


# 2030-01-07 是周一；固定时钟保证“不能预订过去”的校验稳定
NOW = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
VENUE_ID = 1
OWNER_ID = 7


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def weekly(start: str = "09:00", end: str = "21:00", closed=("sunday",)) -> WeeklySchedule:
    days = {}
    for name in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"):
        if name in closed:
            days[name] = {"enabled": False}
        else:
            days[name] = {"enabled": True, "start_time": start, "end_time": end}
    return WeeklySchedule.from_dict(days)


class FakeVenues:
    """内存版场馆服务"""

    def __init__(self):
        self.venues = {
            VENUE_ID: VenueSchedule(venue_id=VENUE_ID, weekly=weekly(), owner_id=OWNER_ID),
        }
        self.calls: List[int] = []

    def add(self, venue: VenueSchedule) -> None:
        self.venues[venue.venue_id] = venue

    async def get_schedule(self, venue_id: int) -> VenueSchedule:
        self.calls.append(venue_id)
        if venue_id not in self.venues:
            raise VenueNotFoundException(venue_id)
        return self.venues[venue_id]


class RecordingPublisher:
    """记录发布的事件；fail=True 时模拟消息系统不可用"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.created: List[BookingCreated] = []
        self.cancelled: List[BookingCancelled] = []

    async def publish_created(self, event: BookingCreated) -> None:
        if self.fail:
            raise EventPublishError("broker unavailable")
        self.created.append(event)

    async def publish_cancelled(self, event: BookingCancelled) -> None:
        if self.fail:
            raise EventPublishError("broker unavailable")
        self.cancelled.append(event)


@pytest.fixture
def availability_engine() -> AvailabilityEngine:
    return AvailabilityEngine(min_duration=timedelta(hours=1), tz=timezone.utc)


@pytest.fixture
def fake_venues() -> FakeVenues:
    return FakeVenues()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def reservation_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'reservation.db'}")
    await create_tables(engine, reservation_metadata)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def payment_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'payment.db'}")
    await create_tables(engine, payment_metadata)
    yield engine
    await engine.dispose()


@pytest.fixture
def booking_uow(reservation_engine):
    return booking_uow_factory(reservation_engine)


@pytest.fixture
def payment_uow(payment_engine):
    return payment_uow_factory(payment_engine)
