from datetime import datetime
from decimal import Decimal

import pytest

from conftest import MONDAY, at
from domain.booking.entity import Booking, BookingStatus, ensure_utc
from domain.common.exceptions import DomainValidationException, InvalidBookingStateException


def _pending() -> Booking:
    return Booking(
        id=1,
        venue_id=1,
        client_id=3,
        owner_id=7,
        start_at=at(MONDAY, 10),
        end_at=at(MONDAY, 11),
        price=Decimal("5000"),
    )


def test_new_booking_is_pending_and_active():
    booking = _pending()
    assert booking.status == BookingStatus.PENDING
    assert booking.is_active
    assert booking.duration_minutes == 60


def test_naive_datetimes_are_treated_as_utc():
    booking = Booking(
        id=None,
        venue_id=1,
        client_id=3,
        owner_id=7,
        start_at=datetime(2030, 1, 7, 10, 0),
        end_at=datetime(2030, 1, 7, 11, 0),
        price="100.50",
    )
    assert booking.start_at == at(MONDAY, 10)
    assert booking.price == Decimal("100.50")
    assert ensure_utc(None) is None


@pytest.mark.parametrize(
    "start,end,price",
    [
        (at(MONDAY, 11), at(MONDAY, 10), Decimal("1")),
        (at(MONDAY, 10), at(MONDAY, 10), Decimal("1")),
        (at(MONDAY, 10), at(MONDAY, 11), Decimal("0")),
    ],
)
def test_invalid_interval_or_price(start, end, price):
    with pytest.raises(DomainValidationException):
        Booking(id=None, venue_id=1, client_id=3, owner_id=7, start_at=start, end_at=end, price=price)


def test_confirm_then_complete():
    booking = _pending()
    booking.confirm()
    assert booking.status == BookingStatus.CONFIRMED
    booking.complete()
    assert booking.status == BookingStatus.COMPLETED
    assert booking.is_terminal()


def test_cannot_complete_pending():
    booking = _pending()
    with pytest.raises(InvalidBookingStateException):
        booking.complete()


def test_cancel_records_reason_and_frees_slot():
    booking = _pending()
    booking.cancel("  client changed plans ")
    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancel_reason == "client changed plans"
    assert not booking.is_active


def test_cancel_requires_reason():
    booking = _pending()
    with pytest.raises(DomainValidationException):
        booking.cancel("   ")
    assert booking.status == BookingStatus.PENDING


@pytest.mark.parametrize("terminal", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
def test_terminal_bookings_cannot_be_cancelled(terminal):
    booking = _pending()
    booking.status = terminal
    with pytest.raises(InvalidBookingStateException):
        booking.cancel("again")


def test_only_pending_can_be_updated():
    booking = _pending()
    booking.apply_changes(start_at=at(MONDAY, 12), end_at=at(MONDAY, 14), price=Decimal("7000"))
    assert booking.duration_minutes == 120
    assert booking.price == Decimal("7000")

    booking.confirm()
    with pytest.raises(InvalidBookingStateException):
        booking.apply_changes(price=Decimal("1"))


def test_apply_changes_revalidates_interval():
    booking = _pending()
    with pytest.raises(DomainValidationException):
        booking.apply_changes(end_at=at(MONDAY, 9))
