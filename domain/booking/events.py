"""
Booking lifecycle events.

Emitted by the reservation side after a state change is committed; the payment
side reacts to them. event_id is generated per publish attempt, so consumers
must deduplicate on booking_id rather than on event_id.

Payload keys are the snake_case field names below (booking_id, created_at,
start_at, end_at); other producers must use the same spelling, not bookingID
or createdAt.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
import uuid


@dataclass
class BookingEvent:
    booking_id: int
    status: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), kw_only=True)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), kw_only=True)


@dataclass
class BookingCreated(BookingEvent):
    venue_id: int = 0
    client_id: int = 0
    owner_id: int = 0
    start_at: datetime | None = None
    end_at: datetime | None = None
    price: Decimal = Decimal("0")


@dataclass
class BookingCancelled(BookingEvent):
    reason: str = ""
