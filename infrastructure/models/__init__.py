"""Infrastructure models package exports."""
from .base import PaymentBase, ReservationBase, payment_metadata, reservation_metadata
from .booking import BookingModel
from .payment import PaymentModel, RefundModel

__all__ = [
    "ReservationBase",
    "PaymentBase",
    "reservation_metadata",
    "payment_metadata",
    "BookingModel",
    "PaymentModel",
    "RefundModel",
]
