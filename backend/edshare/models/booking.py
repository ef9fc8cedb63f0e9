# backend/edshare/models/booking.py
"""
Booking model for the EdShare platform.

A booking is a self-contained occupation of a tutor's calendar: it stores
the tutor, student, date and wall-clock times directly, plus the pricing
snapshot taken at creation time, the payment record and, once cancelled,
the cancellation record.

Architecture: the pricing snapshot is written once and never recalculated,
even if the tutor later edits their hourly rate.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, FrozenSet, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PaymentStatus, SessionType
from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    SCHEDULED = "scheduled"  # Initial - created by a student request
    CONFIRMED = "confirmed"  # Payment captured or tutor/admin confirmed
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"  # Transient; returns to scheduled with the new slot


ACTIVE_STATUSES: FrozenSet[str] = frozenset(
    {
        BookingStatus.SCHEDULED.value,
        BookingStatus.CONFIRMED.value,
        BookingStatus.IN_PROGRESS.value,
    }
)


class Booking(Base):
    """
    Self-contained booking record between a student and a tutor.

    Design: all slot data lives on the booking itself so that conflict
    checks are a single-table query on (tutor_id, booking_date).
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Core relationships
    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    tutor_id = Column(String(26), ForeignKey("tutor_profiles.id"), nullable=False)

    # What is being taught
    session_type = Column(String(20), nullable=False, default=SessionType.REGULAR.value)
    subject = Column(String(100), nullable=False)
    class_level = Column(String(10), nullable=False)
    board = Column(String(20), nullable=False)
    topics = Column(JSON, nullable=False, default=list)

    # Self-contained slot data (wall-clock, same day)
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    mode = Column(String(10), nullable=False)
    location = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.SCHEDULED.value, index=True)

    # Pricing snapshot (preserved for history)
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    base_amount = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # Payment record
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(30), nullable=True)
    payment_transaction_id = Column(String(255), nullable=True, index=True)
    payment_order_id = Column(String(255), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refund_id = Column(String(255), nullable=True)
    refunded_amount = Column(Numeric(10, 2), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation record
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by_role = Column(String(20), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refund_eligible = Column(Boolean, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)
    reschedule_count = Column(Integer, nullable=False, default=0)

    # Relationships
    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("TutorProfile", foreign_keys=[tutor_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', "
            "'cancelled', 'no_show', 'rescheduled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("mode IN ('online', 'offline')", name="ck_bookings_mode"),
        CheckConstraint(
            "duration_minutes BETWEEN 30 AND 180", name="check_duration_range"
        ),
        CheckConstraint("start_time < end_time", name="check_time_order"),
        CheckConstraint("total_amount >= 0", name="check_total_non_negative"),
        CheckConstraint("hourly_rate > 0", name="check_rate_positive"),
        Index("ix_bookings_tutor_date_status", "tutor_id", "booking_date", "status"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.SCHEDULED.value
        logger.info(
            f"Creating booking for student {self.student_id} with tutor {self.tutor_id}"
        )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.student_id}, "
            f"tutor={self.tutor_id}, date={self.booking_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def mark_cancelled(
        self,
        *,
        reason: str,
        cancelled_by_role: str,
        refund_amount: Any,
        cancelled_at: Optional[datetime] = None,
    ) -> None:
        """Write the cancellation record and move to cancelled."""
        self.status = BookingStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by_role = cancelled_by_role
        self.cancelled_at = cancelled_at or datetime.now(timezone.utc)
        self.refund_eligible = True
        self.refund_amount = refund_amount
        logger.info(f"Booking {self.id} cancelled by {cancelled_by_role}")
