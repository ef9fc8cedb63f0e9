# backend/edshare/services/booking_service.py
"""
Booking Service for the EdShare platform

Owns the booking lifecycle: creation with conflict checks and a pricing
snapshot, tutor/staff status updates, cancellation with the lead-time
refund rule, rescheduling, and payment confirmation.

Every state change commits first and publishes its event afterwards;
event handlers (notifications) can fail without undoing the change.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.booking_lock import slot_lock
from ..core.enums import PaymentStatus, RoleName, TeachingMode
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import platform_now, session_start
from ..events.booking_events import (
    BookingCancelled,
    BookingCreated,
    BookingRescheduled,
    BookingStatusChanged,
    PaymentConfirmed,
)
from ..events.handlers import build_publisher
from ..events.publisher import EventPublisher
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..repositories.booking_repository import BookingRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, BookedTimeSlot, BookedTimesResponse
from .base import BaseService
from .booking_transitions import ensure_participant, ensure_reschedulable, ensure_transition
from .conflict_checker import ConflictChecker
from .payment_service import PaymentService
from .pricing_service import PricingService, PricingSnapshot, compute_price, compute_refund
from .search_service import matches_teaching_mode

logger = logging.getLogger(__name__)

MAX_UPCOMING_DAYS = 30
LOCK_BUSY_MESSAGE = "Another booking for this tutor is being processed. Please try again."


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Collaborators are injectable; by default they are built on the same
    session. ``clock`` returns the current platform-local time and exists
    so lead-time rules can be exercised deterministically.
    """

    def __init__(
        self,
        db: Session,
        *,
        repository: Optional[BookingRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        event_publisher: Optional[EventPublisher] = None,
        payment_service: Optional[PaymentService] = None,
        clock: Callable[[], datetime] = platform_now,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.tutor_repository = RepositoryFactory.create_tutor_profile_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.event_publisher = event_publisher or build_publisher(db)
        self._payment_service = payment_service
        self.clock = clock

    @property
    def payment_service(self) -> PaymentService:
        # Built lazily; Stripe is only configured when a payment call happens
        if self._payment_service is None:
            self._payment_service = PaymentService(self.db)
        return self._payment_service

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(self, student: User, booking_data: BookingCreate) -> Booking:
        """
        Create a booking in ``scheduled`` status.

        Args:
            student: The student creating the booking
            booking_data: Slot, subject and mode for the session

        Returns:
            Created booking with its pricing snapshot

        Raises:
            ForbiddenException: caller is not a student
            NotFoundException: tutor not found
            BusinessRuleException: tutor not verified or not taking bookings
            ValidationException: subject/class/board/mode not offered, bad time range
            BookingConflictException: slot overlaps an active booking
            ConflictException: slot is outside the tutor's calendar
        """
        self.log_operation(
            "create_booking",
            student_id=student.id,
            tutor_id=booking_data.tutor_id,
            booking_date=booking_data.booking_date.isoformat(),
        )

        if student.role_name != RoleName.STUDENT:
            raise ForbiddenException("Only students can create bookings", code="STUDENTS_ONLY")

        # 1. Validate the tutor and the requested offering
        pricing = self._validate_booking_prerequisites(booking_data)

        # 2. Validate the slot itself
        self._ensure_in_future(booking_data.booking_date, booking_data.start_time)
        self.conflict_checker.ensure_slot_available(
            booking_data.tutor_id,
            booking_data.booking_date,
            booking_data.start_time,
            booking_data.end_time,
        )

        # 3. Atomic conditional write under the tutor/date lock
        with slot_lock(booking_data.tutor_id, booking_data.booking_date) as acquired:
            if not acquired:
                raise BookingConflictException(
                    message=LOCK_BUSY_MESSAGE,
                    details={"tutor_id": booking_data.tutor_id, "reason": "lock_busy"},
                )
            with self.transaction():
                booking = self.repository.create_if_slot_free(
                    student_id=student.id,
                    tutor_id=booking_data.tutor_id,
                    session_type=booking_data.session_type.value,
                    subject=booking_data.subject,
                    class_level=booking_data.class_level.value,
                    board=booking_data.board.value,
                    booking_date=booking_data.booking_date,
                    start_time=booking_data.start_time,
                    end_time=booking_data.end_time,
                    duration_minutes=pricing.duration_minutes,
                    mode=booking_data.mode.value,
                    location=booking_data.location,
                    topics=list(booking_data.topics),
                    status=BookingStatus.SCHEDULED.value,
                    payment_status=PaymentStatus.PENDING.value,
                    **pricing.as_booking_fields(),
                )

        self.logger.info(f"Booking {booking.id} created for tutor {booking.tutor_id}")
        self.event_publisher.publish(
            BookingCreated(
                booking_id=booking.id,
                student_id=booking.student_id,
                tutor_id=booking.tutor_id,
                created_at=booking.created_at or self.clock(),
            )
        )
        return booking

    def _validate_booking_prerequisites(self, booking_data: BookingCreate) -> PricingSnapshot:
        """Check tutor, offering and duration; return the price to stamp."""
        tutor = self.tutor_repository.get_with_subjects(booking_data.tutor_id)
        if tutor is None:
            raise NotFoundException("Tutor not found", code="TUTOR_NOT_FOUND")
        if not tutor.is_searchable:
            raise BusinessRuleException(
                "Tutor is not available for booking",
                code="TUTOR_NOT_BOOKABLE",
                details={"tutor_id": tutor.id},
            )

        offering = tutor.find_subject(
            booking_data.subject, booking_data.class_level.value, booking_data.board.value
        )
        if offering is None:
            raise ValidationException(
                "Tutor does not teach this subject for the selected class and board",
                code="SUBJECT_NOT_OFFERED",
                details={
                    "subject": booking_data.subject,
                    "class_level": booking_data.class_level.value,
                    "board": booking_data.board.value,
                },
            )

        if not matches_teaching_mode(tutor, TeachingMode(booking_data.mode.value)):
            raise ValidationException(
                f"Tutor does not teach {booking_data.mode.value} sessions",
                code="MODE_NOT_OFFERED",
                details={"mode": booking_data.mode.value},
            )

        duration = self.conflict_checker.validate_time_range(
            booking_data.start_time, booking_data.end_time, booking_data.duration_minutes
        )
        return compute_price(offering.price_per_hour, duration)

    def _ensure_in_future(self, booking_date: date, start_time: time) -> None:
        if session_start(booking_date, start_time) <= self.clock():
            raise ValidationException(
                "Cannot book a session in the past",
                code="BOOKING_IN_PAST",
                details={"booking_date": booking_date.isoformat(), "start_time": start_time.isoformat()},
            )

    # Lifecycle transitions

    @BaseService.measure_operation("update_booking_status")
    def update_booking_status(
        self,
        booking_id: str,
        actor: User,
        new_status: str,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along its lifecycle.

        Cancellation is delegated to ``cancel_booking`` so that the
        lead-time rule and refund always apply.

        Raises:
            NotFoundException: booking not found
            ForbiddenException: actor is not a party to the booking
            InvalidTransitionException: transition or role not permitted
        """
        try:
            requested = BookingStatus(new_status)
        except ValueError as exc:
            raise ValidationException(
                f"Unknown booking status: {new_status}", code="INVALID_STATUS"
            ) from exc

        if requested == BookingStatus.CANCELLED:
            booking, _ = self.cancel_booking(booking_id, actor, reason or "Cancelled")
            return booking

        booking = self._get_booking(booking_id)
        role = ensure_participant(booking, actor, "update")
        previous = BookingStatus(booking.status)
        ensure_transition(role, previous, requested)

        now = self.clock()
        with self.transaction():
            booking.status = requested.value
            if requested == BookingStatus.CONFIRMED:
                booking.confirmed_at = now
            elif requested == BookingStatus.IN_PROGRESS:
                booking.started_at = now
            elif requested == BookingStatus.COMPLETED:
                booking.completed_at = now

        self.log_operation(
            "update_booking_status",
            booking_id=booking.id,
            previous_status=previous.value,
            new_status=requested.value,
            role=role.value,
        )
        self.event_publisher.publish(
            BookingStatusChanged(
                booking_id=booking.id,
                previous_status=previous.value,
                new_status=requested.value,
                changed_by_role=role.value,
                reason=reason,
            )
        )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, actor: User, reason: str) -> Tuple[Booking, Decimal]:
        """
        Cancel a booking and compute the refund owed.

        Returns:
            (cancelled booking, refund amount)

        Raises:
            NotFoundException: booking not found
            ForbiddenException: actor is not a party to the booking
            InvalidTransitionException: booking is not scheduled or confirmed
            NotCancellableException: inside the cancellation lead time
        """
        booking = self._get_booking(booking_id)
        role = ensure_participant(booking, actor, "cancel")
        ensure_transition(role, BookingStatus(booking.status), BookingStatus.CANCELLED)

        now = self.clock()
        refund_amount = compute_refund(booking, now)

        with self.transaction():
            booking.mark_cancelled(
                reason=reason,
                cancelled_by_role=role.value,
                refund_amount=refund_amount,
                cancelled_at=now,
            )

        self.log_operation(
            "cancel_booking",
            booking_id=booking.id,
            cancelled_by=role.value,
            refund_amount=str(refund_amount),
        )
        self.event_publisher.publish(
            BookingCancelled(
                booking_id=booking.id,
                cancelled_by=role.value,
                cancelled_at=now,
                refund_amount=refund_amount,
            )
        )
        return booking, refund_amount

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        booking_id: str,
        actor: User,
        new_date: date,
        start_time: time,
        end_time: time,
    ) -> Booking:
        """
        Move a booking to a new slot of the same length.

        The pricing snapshot is kept and the booking ends up ``scheduled``.

        Raises:
            ValidationException: new range invalid, in the past, or a different length
            BookingConflictException: new slot overlaps another active booking
            ConflictException: new slot is outside the tutor's calendar
            InvalidTransitionException: booking cannot be rescheduled by this role
        """
        booking = self._get_booking(booking_id)
        role = ensure_participant(booking, actor, "reschedule")
        ensure_reschedulable(role, BookingStatus(booking.status))

        self.conflict_checker.validate_time_range(start_time, end_time, booking.duration_minutes)
        self._ensure_in_future(new_date, start_time)
        self.conflict_checker.ensure_slot_available(
            booking.tutor_id, new_date, start_time, end_time, exclude_booking_id=booking.id
        )

        previous_date = booking.booking_date.isoformat()
        previous_start = booking.start_time.strftime("%H:%M")

        with slot_lock(booking.tutor_id, new_date) as acquired:
            if not acquired:
                raise BookingConflictException(
                    message=LOCK_BUSY_MESSAGE,
                    details={"tutor_id": booking.tutor_id, "reason": "lock_busy"},
                )
            with self.transaction():
                self.repository.move_if_slot_free(booking, new_date, start_time, end_time)
                booking.status = BookingStatus.SCHEDULED.value
                booking.rescheduled_at = self.clock()
                booking.reschedule_count = (booking.reschedule_count or 0) + 1

        self.log_operation(
            "reschedule_booking",
            booking_id=booking.id,
            previous_date=previous_date,
            new_date=new_date.isoformat(),
        )
        self.event_publisher.publish(
            BookingRescheduled(
                booking_id=booking.id,
                previous_date=previous_date,
                previous_start_time=previous_start,
                rescheduled_by=role.value,
            )
        )
        return booking

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(self, booking_id: str, actor: User, payment_intent_id: str) -> Booking:
        """
        Record a verified payment and confirm the booking.

        Nothing changes unless the gateway reports the payment succeeded.

        Raises:
            CollaboratorFailure: gateway error or payment not completed
            BusinessRuleException: booking is no longer active
        """
        booking = self._get_booking(booking_id)
        role = ensure_participant(booking, actor, "pay for")
        if role == RoleName.TUTOR:
            raise ForbiddenException(
                "Only the student can confirm payment for a booking",
                code="BOOKING_ACCESS_DENIED",
            )

        if (
            booking.payment_status == PaymentStatus.PAID.value
            and booking.payment_transaction_id == payment_intent_id
        ):
            return booking
        if not booking.is_active:
            raise BusinessRuleException(
                f"Cannot confirm payment for a booking in status {booking.status}",
                code="BOOKING_NOT_PAYABLE",
            )

        self.payment_service.verify_payment_intent(booking, payment_intent_id)

        now = self.clock()
        with self.transaction():
            booking.payment_status = PaymentStatus.PAID.value
            booking.payment_method = booking.payment_method or "stripe"
            booking.payment_transaction_id = payment_intent_id
            booking.paid_at = now
            if booking.status == BookingStatus.SCHEDULED.value:
                booking.status = BookingStatus.CONFIRMED.value
                booking.confirmed_at = now

        self.log_operation("confirm_payment", booking_id=booking.id, payment_intent_id=payment_intent_id)
        self.event_publisher.publish(
            PaymentConfirmed(booking_id=booking.id, payment_intent_id=payment_intent_id, paid_at=now)
        )
        return booking

    # Reads

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    @BaseService.measure_operation("get_booking_for_user")
    def get_booking_for_user(self, booking_id: str, user: User) -> Booking:
        booking = self._get_booking(booking_id)
        ensure_participant(booking, user, "view")
        return booking

    @BaseService.measure_operation("list_bookings_for_user")
    def list_bookings_for_user(
        self,
        user: User,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """Page of the caller's bookings, newest first, with the total count."""
        if status is not None:
            try:
                status = BookingStatus(status).value
            except ValueError as exc:
                raise ValidationException(
                    f"Unknown booking status: {status}", code="INVALID_STATUS"
                ) from exc

        return self.repository.list_for_user(
            role=user.role_name,
            user_id=user.id,
            tutor_profile_id=self._tutor_profile_id(user),
            status=status,
            offset=(page - 1) * limit,
            limit=limit,
        )

    @BaseService.measure_operation("get_upcoming_sessions")
    def get_upcoming_sessions(self, user: User, days: int = 7) -> List[Booking]:
        """Scheduled and confirmed sessions starting between now and ``days`` ahead."""
        if not 1 <= days <= MAX_UPCOMING_DAYS:
            raise ValidationException(
                f"days must be between 1 and {MAX_UPCOMING_DAYS}",
                code="INVALID_DAYS",
                details={"days": days},
            )
        if user.role_name.is_staff:
            raise NotFoundException("Profile not found", code="PROFILE_NOT_FOUND")

        now = self.clock()
        return self.repository.get_upcoming_for_user(
            role=user.role_name,
            user_id=user.id,
            tutor_profile_id=self._tutor_profile_id(user),
            from_date=now.date(),
            from_time=now.time().replace(tzinfo=None),
            until_date=now.date() + timedelta(days=days),
        )

    @staticmethod
    def _tutor_profile_id(user: User) -> Optional[str]:
        if user.role_name != RoleName.TUTOR:
            return None
        if user.tutor_profile is None:
            raise NotFoundException("Tutor profile not found", code="PROFILE_NOT_FOUND")
        return str(user.tutor_profile.id)

    @BaseService.measure_operation("get_booked_times")
    def get_booked_times(self, tutor_id: str, target_date: date) -> BookedTimesResponse:
        if self.tutor_repository.get_by_id(tutor_id, load_relationships=False) is None:
            raise NotFoundException("Tutor not found", code="TUTOR_NOT_FOUND")
        slots = self.conflict_checker.get_booked_times_for_date(tutor_id, target_date)
        return BookedTimesResponse(
            tutor_id=tutor_id,
            booking_date=target_date,
            booked=[BookedTimeSlot(**slot) for slot in slots],
        )

    def quote(
        self,
        tutor_id: str,
        subject: str,
        class_level: str,
        board: str,
        duration_minutes: int,
    ) -> PricingSnapshot:
        return PricingService(self.db).quote(tutor_id, subject, class_level, board, duration_minutes)
