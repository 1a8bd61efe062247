"""
Booking summary assembled from the reservation, venue and payment services.
"""
from __future__ import annotations

from typing import Any, Optional

from application.dto import DTOBase


class BookingSummaryDTO(DTOBase):
    booking: Any
    venue: Optional[Any] = None
    payment: Optional[Any] = None
    venue_error: Optional[str] = None
    payment_error: Optional[str] = None
