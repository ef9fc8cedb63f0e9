"""
Payment Service for the EdShare platform

Implements the Stripe interactions used by bookings: creating a
PaymentIntent for a booking's total, verifying that an intent succeeded
before the booking is confirmed, and refunding cancelled bookings.

Amounts are stored in rupees (Decimal) and sent to Stripe in paise.
"""

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.enums import PaymentStatus, RoleName
from ..core.exceptions import (
    BusinessRuleException,
    CollaboratorFailure,
    ForbiddenException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.payment import (
    PaymentHistoryItem,
    PaymentHistoryResponse,
    PaymentIntentResponse,
    RefundResponse,
)
from ..schemas.search import PaginationInfo
from .base import BaseService
from .pricing_service import to_money

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise."""
    return int((to_money(amount) * 100).to_integral_value())


def from_minor_units(amount: int) -> Decimal:
    return to_money(Decimal(amount) / 100)


class PaymentService(BaseService):
    """
    Service for Stripe API interactions tied to bookings.

    Network calls use the configured timeout and retry count; any Stripe
    error surfaces as CollaboratorFailure("stripe").
    """

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.currency = settings.stripe_currency
        self.stripe_configured = settings.stripe_configured

        if self.stripe_configured:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
            stripe.max_network_retries = settings.stripe_max_network_retries
            stripe.default_http_client = stripe.RequestsClient(
                timeout=settings.stripe_timeout_seconds
            )
            self.logger.info("Stripe service configured successfully")
        else:
            self.logger.warning("Stripe secret key not configured - payment calls will fail")

    def _check_stripe_configured(self) -> None:
        """Check if Stripe is properly configured before making API calls."""
        if not self.stripe_configured:
            raise ServiceException(
                "Stripe service not configured. Please check STRIPE_SECRET_KEY environment variable.",
                code="PAYMENTS_NOT_CONFIGURED",
            )

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    @staticmethod
    def _ensure_payer(booking: Booking, actor: User) -> None:
        if actor.role_name.is_staff:
            return
        if actor.role_name != RoleName.STUDENT or booking.student_id != actor.id:
            raise ForbiddenException(
                "You do not have permission to pay for this booking",
                code="BOOKING_ACCESS_DENIED",
                details={"booking_id": booking.id},
            )

    @BaseService.measure_operation("payments.create_intent")
    def create_payment_intent(self, booking_id: str, actor: User) -> PaymentIntentResponse:
        """
        Create a PaymentIntent for the booking's total amount.

        Raises:
            BusinessRuleException: booking is not active or already paid
            CollaboratorFailure: Stripe call failed
        """
        self._check_stripe_configured()
        booking = self._get_booking(booking_id)
        self._ensure_payer(booking, actor)

        if not booking.is_active:
            raise BusinessRuleException(
                f"Cannot pay for a booking in status {booking.status}",
                code="BOOKING_NOT_PAYABLE",
            )
        if booking.payment_status != PaymentStatus.PENDING.value:
            raise BusinessRuleException(
                "Booking has already been paid", code="ALREADY_PAID"
            )

        amount = to_minor_units(booking.total_amount)
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=self.currency,
                metadata={"booking_id": booking.id, "student_id": booking.student_id},
                description=f"{settings.brand_name} session {booking.id}",
                idempotency_key=f"booking:{booking.id}:intent:{amount}",
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error creating payment intent: {str(e)}")
            raise CollaboratorFailure("stripe", f"Failed to create payment intent: {str(e)}") from e

        with self.transaction():
            booking.payment_order_id = intent.id
            booking.payment_method = "stripe"

        self.logger.info(f"Created payment intent {intent.id} for booking {booking.id}")
        return PaymentIntentResponse(
            booking_id=booking.id,
            payment_intent_id=intent.id,
            client_secret=getattr(intent, "client_secret", None),
            amount=from_minor_units(amount),
            currency=self.currency,
            status=intent.status,
        )

    @BaseService.measure_operation("payments.verify_intent")
    def verify_payment_intent(self, booking: Booking, payment_intent_id: str) -> Dict[str, Any]:
        """
        Confirm with Stripe that the intent succeeded for this booking's total.

        Raises:
            CollaboratorFailure: Stripe error, or the intent is not succeeded
            ValidationException: intent belongs to another booking or amount
        """
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error retrieving payment intent {payment_intent_id}: {e}")
            raise CollaboratorFailure("stripe", f"Payment verification failed: {str(e)}") from e

        metadata = getattr(intent, "metadata", None) or {}
        if metadata.get("booking_id") != booking.id:
            raise ValidationException(
                "Payment does not belong to this booking",
                code="PAYMENT_MISMATCH",
                details={"payment_intent_id": payment_intent_id},
            )
        if intent.amount != to_minor_units(booking.total_amount):
            raise ValidationException(
                "Payment amount does not match the booking total",
                code="PAYMENT_MISMATCH",
                details={"expected": to_minor_units(booking.total_amount), "actual": intent.amount},
            )
        if intent.status != SUCCEEDED:
            raise CollaboratorFailure(
                "stripe",
                "Payment has not completed",
                details={"payment_intent_id": payment_intent_id, "status": intent.status},
            )
        return {"payment_intent_id": intent.id, "amount": intent.amount, "status": intent.status}

    @BaseService.measure_operation("payments.refund")
    def refund(
        self,
        booking_id: str,
        actor: User,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None,
    ) -> RefundResponse:
        """
        Refund a paid booking through Stripe (staff only).

        Defaults to the refund amount computed when the booking was cancelled.

        Raises:
            ForbiddenException: actor is not staff
            BusinessRuleException: booking not paid, or amount exceeds what remains
            CollaboratorFailure: Stripe call failed
        """
        if not actor.role_name.is_staff:
            raise ForbiddenException("Only staff can issue refunds", code="REFUND_FORBIDDEN")
        self._check_stripe_configured()
        booking = self._get_booking(booking_id)

        if booking.payment_status not in (
            PaymentStatus.PAID.value,
            PaymentStatus.PARTIAL_REFUND.value,
        ) or not booking.payment_transaction_id:
            raise BusinessRuleException("Booking has no captured payment", code="NOT_PAID")

        already_refunded = to_money(booking.refunded_amount or 0)
        remaining = to_money(booking.total_amount) - already_refunded
        if amount is None:
            if booking.status != BookingStatus.CANCELLED.value or booking.refund_amount is None:
                raise BusinessRuleException(
                    "Refund amount required for bookings that are not cancelled",
                    code="REFUND_AMOUNT_REQUIRED",
                )
            amount = to_money(booking.refund_amount) - already_refunded
        amount = to_money(amount)
        if amount <= 0 or amount > remaining:
            raise BusinessRuleException(
                "Refund amount exceeds the refundable balance",
                code="INVALID_REFUND_AMOUNT",
                details={"requested": str(amount), "refundable": str(remaining)},
            )

        try:
            refund = stripe.Refund.create(
                payment_intent=booking.payment_transaction_id,
                amount=to_minor_units(amount),
                metadata={"booking_id": booking.id, "reason": reason or ""},
                idempotency_key=f"booking:{booking.id}:refund:{already_refunded}:{amount}",
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe error refunding booking {booking.id}: {str(e)}")
            raise CollaboratorFailure("stripe", f"Refund failed: {str(e)}") from e

        with self.transaction():
            booking.refund_id = refund.id
            booking.refunded_amount = already_refunded + amount
            booking.refunded_at = datetime.now(timezone.utc)
            booking.payment_status = (
                PaymentStatus.REFUNDED.value
                if booking.refunded_amount >= to_money(booking.total_amount)
                else PaymentStatus.PARTIAL_REFUND.value
            )

        self.log_operation("refund", booking_id=booking.id, amount=str(amount), refund_id=refund.id)
        return RefundResponse(
            booking_id=booking.id,
            refund_id=refund.id,
            amount=amount,
            status=refund.status,
            payment_status=booking.payment_status,
        )

    @BaseService.measure_operation("payments.history")
    def get_payment_history(
        self, user: User, page: int = 1, limit: int = 10
    ) -> PaymentHistoryResponse:
        """
        Bookings with any payment activity, latest payment first.

        Students see what they paid, tutors what they were paid for, and
        staff see every booking.
        """
        bookings, total = self._payment_history_page(user, page, limit)
        return PaymentHistoryResponse(
            payments=[_history_item(b) for b in bookings],
            pagination=PaginationInfo.build(page, limit, total),
        )

    def _payment_history_page(self, user: User, page: int, limit: int) -> Tuple[List[Booking], int]:
        tutor_profile_id = None
        if user.role_name == RoleName.TUTOR:
            if user.tutor_profile is None:
                raise NotFoundException("Tutor profile not found", code="PROFILE_NOT_FOUND")
            tutor_profile_id = str(user.tutor_profile.id)
        return self.booking_repository.list_payment_history(
            role=user.role_name,
            user_id=user.id,
            tutor_profile_id=tutor_profile_id,
            offset=(page - 1) * limit,
            limit=limit,
        )


def _history_item(booking: Booking) -> PaymentHistoryItem:
    return PaymentHistoryItem(
        booking_id=booking.id,
        subject=booking.subject,
        booking_date=booking.booking_date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        status=booking.status,
        total_amount=to_money(booking.total_amount),
        payment_status=booking.payment_status,
        payment_method=booking.payment_method,
        payment_transaction_id=booking.payment_transaction_id,
        paid_at=booking.paid_at,
        refunded_amount=booking.refunded_amount,
        refunded_at=booking.refunded_at,
        student_name=booking.student.full_name,
        tutor_name=booking.tutor.user.full_name,
    )
