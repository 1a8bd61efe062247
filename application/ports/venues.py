"""
Venue schedule lookup port (application/ports).

Implementations fail closed: a timeout or upstream error raises
UpstreamUnavailableException and is never treated as "no constraints".
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.booking.schedule import VenueSchedule


@runtime_checkable
class VenueScheduleProvider(Protocol):
    async def get_schedule(self, venue_id: int) -> VenueSchedule: ...
