"""Booking domain events and their in-process publisher."""
from .booking_events import (
    BookingCancelled,
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    PaymentConfirmed,
)
from .publisher import EventPublisher

__all__ = [
    "BookingCancelled",
    "BookingCreated",
    "BookingRescheduled",
    "BookingStatusChanged",
    "EventPublisher",
    "PaymentConfirmed",
]
