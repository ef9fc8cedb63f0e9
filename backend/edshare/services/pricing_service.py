"""Centralized pricing, tax and refund calculations for bookings."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import PaymentStatus
from ..core.exceptions import (
    NotCancellableException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_aware, platform_now, session_start
from ..repositories.factory import RepositoryFactory
from .base import BaseService

if TYPE_CHECKING:
    from ..models.booking import Booking

CENTS = Decimal("0.01")
REFUNDABLE_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.PAID.value, PaymentStatus.PARTIAL_REFUND.value}
)
Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize to 2 places, half-up. Floats go through str() to avoid binary noise."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationException(f"Invalid amount: {value}", code="INVALID_AMOUNT") from exc
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingSnapshot:
    """Cost stamped on a booking at creation time and never recalculated."""

    hourly_rate: Decimal
    duration_minutes: int
    base_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def as_booking_fields(self) -> Dict[str, Any]:
        fields = asdict(self)
        fields.pop("duration_minutes")
        return fields


def compute_price(
    hourly_rate: Number, duration_minutes: int, tax_rate: Optional[Decimal] = None
) -> PricingSnapshot:
    """
    base = rate x minutes / 60; tax = base x tax_rate; total = base + tax.

    >>> compute_price(600, 60).total_amount
    Decimal('708.00')
    """
    rate = to_money(hourly_rate)
    if rate <= 0:
        raise ValidationException("Hourly rate must be positive", code="INVALID_RATE")
    if duration_minutes <= 0:
        raise ValidationException("Duration must be positive", code="INVALID_DURATION")

    effective_tax_rate = settings.tax_rate if tax_rate is None else tax_rate
    base = to_money(rate * Decimal(duration_minutes) / Decimal(60))
    tax = to_money(base * effective_tax_rate)
    return PricingSnapshot(
        hourly_rate=rate,
        duration_minutes=duration_minutes,
        base_amount=base,
        tax_amount=tax,
        total_amount=base + tax,
    )


def hours_until_session(booking: "Booking", at: Optional[datetime] = None) -> float:
    """Hours from ``at`` (default: now) to the booking's scheduled start; negative once started."""
    moment = ensure_aware(at) if at is not None else platform_now()
    start = session_start(booking.booking_date, booking.start_time)
    return (start - moment).total_seconds() / 3600


def can_cancel(booking: "Booking", at: Optional[datetime] = None) -> bool:
    """True when ``at`` is at least the lead time before the scheduled start (inclusive)."""
    moment = ensure_aware(at) if at is not None else platform_now()
    start = session_start(booking.booking_date, booking.start_time)
    return moment <= start - timedelta(hours=settings.cancellation_lead_hours)


def compute_refund(booking: "Booking", cancellation_time: Optional[datetime] = None) -> Decimal:
    """
    Refund owed when cancelling at ``cancellation_time``.

    Flat policy: an allowed cancellation refunds whatever was paid and has
    not already been refunded. Nothing is owed on an unpaid booking.

    Raises:
        NotCancellableException: inside the lead-time window
    """
    if not can_cancel(booking, cancellation_time):
        raise NotCancellableException(
            required_hours=settings.cancellation_lead_hours,
            hours_until_session=hours_until_session(booking, cancellation_time),
        )
    if booking.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
        return Decimal("0.00")
    already_refunded = to_money(booking.refunded_amount or 0)
    return max(to_money(booking.total_amount) - already_refunded, Decimal("0.00"))


class PricingService(BaseService):
    """Price quotes for a tutor's subject offering."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.tutor_repository = RepositoryFactory.create_tutor_profile_repository(db)

    @BaseService.measure_operation("pricing.quote")
    def quote(
        self,
        tutor_id: str,
        subject: str,
        class_level: str,
        board: str,
        duration_minutes: int,
    ) -> PricingSnapshot:
        """Price a prospective booking without writing anything."""
        tutor = self.tutor_repository.get_with_subjects(tutor_id)
        if tutor is None:
            raise NotFoundException("Tutor not found", code="TUTOR_NOT_FOUND")

        if not settings.min_session_minutes <= duration_minutes <= settings.max_session_minutes:
            raise ValidationException(
                f"Duration must be between {settings.min_session_minutes} and "
                f"{settings.max_session_minutes} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )

        offering = tutor.find_subject(subject, class_level, board)
        if offering is None:
            raise ValidationException(
                "Tutor does not teach this subject for the selected class and board",
                code="SUBJECT_NOT_OFFERED",
                details={"subject": subject, "class_level": class_level, "board": board},
            )
        return compute_price(offering.price_per_hour, duration_minutes)
