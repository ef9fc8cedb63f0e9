"""Booking domain events."""
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional


@dataclass
class BookingCreated:
    """Fired after a booking is successfully created."""

    booking_id: str
    student_id: str
    tutor_id: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingStatusChanged:
    """Fired after a tutor or staff member moves a booking to a new status."""

    booking_id: str
    previous_status: str
    new_status: str
    changed_by_role: str
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled."""

    booking_id: str
    cancelled_by: str  # role name
    cancelled_at: datetime
    refund_amount: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingRescheduled:
    """Fired after a booking moves to a new slot."""

    booking_id: str
    previous_date: str
    previous_start_time: str
    rescheduled_by: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PaymentConfirmed:
    """Fired once the gateway has verified payment and the booking is confirmed."""

    booking_id: str
    payment_intent_id: str
    paid_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
