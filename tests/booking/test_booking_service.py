from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import MONDAY, NOW, OWNER_ID, VENUE_ID, RecordingPublisher, at, weekly
from application.dtos.auth import Actor, Role
from application.dtos.bookings import CancelBookingDTO, CreateBookingDTO, UpdateBookingDTO
from application.services.booking_service import PUBLISH_WARNING, BookingApplicationService
from domain.booking.entity import BookingStatus
from domain.booking.schedule import VenueSchedule
from domain.common.exceptions import (
    BookingConflictException,
    BookingNotFoundException,
    DomainValidationException,
    ForbiddenException,
    InvalidBookingStateException,
    ScheduleMismatchException,
    VenueNotFoundException,
    VenueOwnerMismatchException,
)


CLIENT = Actor(user_id=3, role=Role.CLIENT)
OTHER_CLIENT = Actor(user_id=4, role=Role.CLIENT)
OWNER = Actor(user_id=OWNER_ID, role=Role.OWNER)
ADMIN = Actor(user_id=99, role=Role.ADMIN)


@pytest.fixture
def service(booking_uow, fake_venues, publisher, availability_engine):
    return BookingApplicationService(
        uow_factory=booking_uow,
        venues=fake_venues,
        publisher=publisher,
        engine=availability_engine,
        clock=lambda: NOW,
    )


def _create(start_hour, end_hour, *, price="5000", owner_id=OWNER_ID, venue_id=VENUE_ID, day=MONDAY):
    return CreateBookingDTO(
        venue_id=venue_id,
        owner_id=owner_id,
        start_at=at(day, start_hour),
        end_at=at(day, end_hour),
        price=Decimal(price),
    )


@pytest.mark.asyncio
async def test_create_booking_persists_and_publishes_once(service, publisher):
    result = await service.create_booking(CLIENT, _create(10, 11))

    assert result.event_published is True
    assert result.warning is None
    booking = result.booking
    assert booking.id is not None
    assert booking.status == BookingStatus.PENDING.value
    assert booking.client_id == CLIENT.user_id
    assert booking.duration == 60

    assert len(publisher.created) == 1
    event = publisher.created[0]
    assert event.booking_id == booking.id
    assert event.client_id == CLIENT.user_id
    assert event.price == Decimal("5000")
    assert event.status == "pending"

    stored = await service.get_booking(booking.id)
    assert stored.start_at == at(MONDAY, 10)


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected_without_event(service, publisher):
    await service.create_booking(CLIENT, _create(10, 12))

    with pytest.raises(BookingConflictException):
        await service.create_booking(OTHER_CLIENT, _create(11, 13))

    assert len(publisher.created) == 1
    items, total = await service.list_client_bookings(OTHER_CLIENT, limit=10, offset=0)
    assert items == [] and total == 0


@pytest.mark.asyncio
async def test_adjacent_bookings_are_allowed(service):
    await service.create_booking(CLIENT, _create(10, 11))
    second = await service.create_booking(OTHER_CLIENT, _create(11, 12))
    third = await service.create_booking(OTHER_CLIENT, _create(9, 10))
    assert second.booking.start_at == at(MONDAY, 11)
    assert third.booking.end_at == at(MONDAY, 10)


@pytest.mark.asyncio
async def test_schedule_and_validation_errors(service, fake_venues):
    with pytest.raises(ScheduleMismatchException):
        await service.create_booking(CLIENT, _create(20, 22))
    with pytest.raises(ScheduleMismatchException):
        await service.create_booking(CLIENT, _create(10, 11, day=MONDAY - timedelta(days=1)))
    with pytest.raises(DomainValidationException):
        await service.create_booking(CLIENT, _create(10, 11, day=NOW.date() - timedelta(days=1)))
    with pytest.raises(VenueOwnerMismatchException):
        await service.create_booking(CLIENT, _create(10, 11, owner_id=OWNER_ID + 1))
    with pytest.raises(VenueNotFoundException):
        await service.create_booking(CLIENT, _create(10, 11, venue_id=404))

    fake_venues.add(VenueSchedule(venue_id=2, weekly=weekly(), owner_id=OWNER_ID, is_active=False))
    with pytest.raises(ScheduleMismatchException):
        await service.create_booking(CLIENT, _create(10, 11, venue_id=2))


@pytest.mark.asyncio
async def test_owner_role_cannot_create(service):
    with pytest.raises(ForbiddenException):
        await service.create_booking(OWNER, _create(10, 11))


@pytest.mark.asyncio
async def test_publish_failure_degrades_but_keeps_booking(booking_uow, fake_venues, availability_engine):
    failing = RecordingPublisher(fail=True)
    service = BookingApplicationService(
        booking_uow, fake_venues, failing, availability_engine, clock=lambda: NOW
    )

    result = await service.create_booking(CLIENT, _create(10, 11))

    assert result.event_published is False
    assert result.warning == PUBLISH_WARNING
    stored = await service.get_booking(result.booking.id)
    assert stored.status == BookingStatus.PENDING.value

    cancelled = await service.cancel_booking(CLIENT, stored.id, CancelBookingDTO(reason="changed plans"))
    assert cancelled.event_published is False
    assert (await service.get_booking(stored.id)).status == BookingStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_update_excludes_own_interval(service, publisher):
    created = await service.create_booking(CLIENT, _create(10, 12))

    result = await service.update_booking(
        CLIENT,
        created.booking.id,
        UpdateBookingDTO(start_at=at(MONDAY, 11), end_at=at(MONDAY, 13)),
    )

    assert result.booking.start_at == at(MONDAY, 11)
    assert result.booking.end_at == at(MONDAY, 13)
    assert result.booking.price == Decimal("5000")
    # 修改不产生事件
    assert len(publisher.created) == 1
    assert publisher.cancelled == []


@pytest.mark.asyncio
async def test_update_conflicts_with_other_booking(service):
    first = await service.create_booking(CLIENT, _create(10, 11))
    await service.create_booking(OTHER_CLIENT, _create(12, 13))

    with pytest.raises(BookingConflictException):
        await service.update_booking(
            CLIENT, first.booking.id, UpdateBookingDTO(end_at=at(MONDAY, 12, 30))
        )


@pytest.mark.asyncio
async def test_update_permissions_and_state(service):
    created = await service.create_booking(CLIENT, _create(10, 11))
    booking_id = created.booking.id

    with pytest.raises(ForbiddenException):
        await service.update_booking(OTHER_CLIENT, booking_id, UpdateBookingDTO(price=Decimal("1")))

    updated = await service.update_booking(ADMIN, booking_id, UpdateBookingDTO(price=Decimal("6000")))
    assert updated.booking.price == Decimal("6000")

    await service.cancel_booking(CLIENT, booking_id, CancelBookingDTO(reason="no longer needed"))
    with pytest.raises(InvalidBookingStateException):
        await service.update_booking(CLIENT, booking_id, UpdateBookingDTO(price=Decimal("7000")))

    with pytest.raises(BookingNotFoundException):
        await service.update_booking(CLIENT, 999, UpdateBookingDTO(price=Decimal("7000")))


@pytest.mark.asyncio
async def test_cancel_publishes_once_and_frees_interval(service, publisher):
    created = await service.create_booking(CLIENT, _create(10, 11))
    booking_id = created.booking.id

    result = await service.cancel_booking(OWNER, booking_id, CancelBookingDTO(reason="venue maintenance"))

    assert result.booking.status == BookingStatus.CANCELLED.value
    assert result.booking.cancel_reason == "venue maintenance"
    assert len(publisher.cancelled) == 1
    assert publisher.cancelled[0].booking_id == booking_id
    assert publisher.cancelled[0].reason == "venue maintenance"

    with pytest.raises(InvalidBookingStateException):
        await service.cancel_booking(CLIENT, booking_id, CancelBookingDTO(reason="again"))
    assert len(publisher.cancelled) == 1

    again = await service.create_booking(OTHER_CLIENT, _create(10, 11))
    assert again.booking.id != booking_id


@pytest.mark.asyncio
async def test_cancel_by_stranger_is_forbidden(service, publisher):
    created = await service.create_booking(CLIENT, _create(10, 11))
    with pytest.raises(ForbiddenException):
        await service.cancel_booking(OTHER_CLIENT, created.booking.id, CancelBookingDTO(reason="nope"))
    assert publisher.cancelled == []


@pytest.mark.asyncio
async def test_availability_reflects_active_bookings(service):
    await service.create_booking(CLIENT, _create(10, 11))
    cancelled = await service.create_booking(CLIENT, _create(14, 15))
    await service.cancel_booking(CLIENT, cancelled.booking.id, CancelBookingDTO(reason="changed plans"))

    availability = await service.get_availability(VENUE_ID, MONDAY)

    assert availability.day == MONDAY
    assert [(s.start_at, s.end_at) for s in availability.slots] == [
        (at(MONDAY, 9), at(MONDAY, 10)),
        (at(MONDAY, 11), at(MONDAY, 21)),
    ]
    assert availability.slots[1].duration == 600


@pytest.mark.asyncio
async def test_availability_defaults_to_today(service):
    availability = await service.get_availability(VENUE_ID)
    assert availability.day == NOW.date()


@pytest.mark.asyncio
async def test_venue_bookings_visible_to_owner_only(service):
    first = await service.create_booking(CLIENT, _create(10, 11))
    await service.create_booking(CLIENT, _create(12, 13))
    await service.cancel_booking(CLIENT, first.booking.id, CancelBookingDTO(reason="changed plans"))

    listed = await service.list_venue_bookings(OWNER, VENUE_ID, MONDAY)
    assert [b.status for b in listed] == ["cancelled", "pending"]

    with pytest.raises(ForbiddenException):
        await service.list_venue_bookings(CLIENT, VENUE_ID, MONDAY)


@pytest.mark.asyncio
async def test_list_client_bookings_paginates(service):
    for hour in (10, 12, 14):
        await service.create_booking(CLIENT, _create(hour, hour + 1))

    items, total = await service.list_client_bookings(CLIENT, limit=2, offset=0)
    assert total == 3
    # 按开始时间倒序
    assert [i.start_at.hour for i in items] == [14, 12]
