# backend/edshare/repositories/booking_repository.py
"""
Booking Repository for the EdShare platform

Implements data access for booking management using the self-contained
booking fields (tutor_id, booking_date, start_time, end_time).

This repository handles:
- Atomic conditional writes (create/move only if the slot is still free)
- Overlap queries for conflict checking
- User-specific booking queries (student/tutor/staff) with pagination
- Upcoming session windows
"""

from datetime import date, time
import logging
from typing import Any, Dict, List, Optional, Tuple, cast

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import PaymentStatus, RoleName
from ..core.exceptions import BookingConflictException, RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.tutor import TutorProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap_per_tutor"
SLOT_TAKEN_MESSAGE = "This time slot is no longer available"


def is_overlap_violation(error: IntegrityError) -> bool:
    """Return True when an IntegrityError comes from the per-tutor exclusion constraint."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", "") if diag is not None else ""
    if constraint_name:
        return bool(constraint_name == OVERLAP_CONSTRAINT_NAME)
    return OVERLAP_CONSTRAINT_NAME in str(orig if orig is not None else error)


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for booking data access.

    Every write that occupies a tutor's calendar goes through
    ``create_if_slot_free`` or ``move_if_slot_free``.
    """

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Overlap queries

    def get_active_overlaps(
        self,
        tutor_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Active bookings for the tutor that overlap [start_time, end_time).

        Overlap: existing.start < end AND start < existing.end.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.tutor_id == tutor_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(list(ACTIVE_STATUSES)),
                Booking.start_time < end_time,
                Booking.end_time > start_time,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.start_time).all())
        except Exception as e:
            self.logger.error(f"Error getting overlapping bookings: {str(e)}")
            raise RepositoryException(f"Failed to check conflict: {str(e)}")

    def lock_tutor(self, tutor_id: str) -> Optional[TutorProfile]:
        """
        Take a row lock on the tutor profile for the rest of the transaction.

        Serializes concurrent writers for one tutor on PostgreSQL; SQLite
        already serializes writers and ignores FOR UPDATE.
        """
        query = self.db.query(TutorProfile).filter(TutorProfile.id == tutor_id)
        if self.dialect_name == "postgresql":
            query = query.with_for_update()
        return cast(Optional[TutorProfile], query.first())

    # Atomic conditional writes

    def create_if_slot_free(self, **fields: Any) -> Booking:
        """
        Insert a booking only if no active booking overlaps it.

        The overlap re-check runs inside the caller's transaction after the
        tutor row lock, immediately before the insert.

        Raises:
            BookingConflictException: If the slot was taken in the meantime
        """
        tutor_id = fields["tutor_id"]
        booking_date = fields["booking_date"]
        start_time = fields["start_time"]
        end_time = fields["end_time"]

        self.lock_tutor(tutor_id)
        clashes = self.get_active_overlaps(tutor_id, booking_date, start_time, end_time)
        if clashes:
            self.logger.info(
                "Slot taken before insert",
                extra={"tutor_id": tutor_id, "booking_date": booking_date.isoformat()},
            )
            raise BookingConflictException(
                message=SLOT_TAKEN_MESSAGE,
                details=_conflict_details(clashes),
            )

        try:
            return self.create(**fields)
        except RepositoryException as exc:
            cause = exc.__cause__
            if isinstance(cause, IntegrityError) and is_overlap_violation(cause):
                raise BookingConflictException(message=SLOT_TAKEN_MESSAGE) from cause
            raise

    def move_if_slot_free(
        self, booking: Booking, booking_date: date, start_time: time, end_time: time
    ) -> Booking:
        """Move a booking to a new slot only if the new slot is free of other bookings."""
        self.lock_tutor(booking.tutor_id)
        clashes = self.get_active_overlaps(
            booking.tutor_id, booking_date, start_time, end_time, exclude_booking_id=booking.id
        )
        if clashes:
            raise BookingConflictException(
                message=SLOT_TAKEN_MESSAGE,
                details=_conflict_details(clashes),
            )

        booking.booking_date = booking_date
        booking.start_time = start_time
        booking.end_time = end_time
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                raise BookingConflictException(message=SLOT_TAKEN_MESSAGE) from exc
            raise RepositoryException(f"Failed to move booking: {exc}") from exc
        return booking

    # Reads

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        """Booking with student, tutor and tutor user loaded."""
        try:
            return cast(
                Optional[Booking],
                self._apply_eager_loading(self.db.query(Booking))
                .filter(Booking.id == booking_id)
                .first(),
            )
        except Exception as e:
            self.logger.error(f"Error getting booking details: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}")

    def list_for_user(
        self,
        *,
        role: RoleName,
        user_id: str,
        tutor_profile_id: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """
        Page of bookings visible to a caller, newest session first.

        Students see their own bookings, tutors the bookings on their profile,
        staff see everything.
        """
        try:
            query = self._scope_to_user(
                self.db.query(Booking), role, user_id, tutor_profile_id
            )
            if status:
                query = query.filter(Booking.status == status)

            total = query.count()
            items = (
                self._apply_eager_loading(query)
                .order_by(Booking.booking_date.desc(), Booking.start_time.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return cast(List[Booking], items), total
        except Exception as e:
            self.logger.error(f"Error listing bookings: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def get_upcoming_for_user(
        self,
        *,
        role: RoleName,
        user_id: str,
        tutor_profile_id: Optional[str],
        from_date: date,
        from_time: time,
        until_date: date,
    ) -> List[Booking]:
        """Scheduled or confirmed sessions from now until ``until_date`` inclusive, soonest first."""
        try:
            query = self._scope_to_user(self.db.query(Booking), role, user_id, tutor_profile_id)
            query = query.filter(
                Booking.status.in_(["scheduled", "confirmed"]),
                Booking.booking_date <= until_date,
                or_(
                    Booking.booking_date > from_date,
                    and_(Booking.booking_date == from_date, Booking.start_time >= from_time),
                ),
            )
            return cast(
                List[Booking],
                self._apply_eager_loading(query)
                .order_by(Booking.booking_date, Booking.start_time)
                .all(),
            )
        except Exception as e:
            self.logger.error(f"Error getting upcoming bookings: {str(e)}")
            raise RepositoryException(f"Failed to get upcoming bookings: {str(e)}")

    def list_payment_history(
        self,
        *,
        role: RoleName,
        user_id: str,
        tutor_profile_id: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Booking], int]:
        """Bookings with payment activity visible to a caller, latest payment first."""
        try:
            query = self._scope_to_user(self.db.query(Booking), role, user_id, tutor_profile_id)
            query = query.filter(Booking.payment_status != PaymentStatus.PENDING.value)

            total = query.count()
            items = (
                self._apply_eager_loading(query)
                .order_by(
                    Booking.paid_at.is_(None),
                    Booking.paid_at.desc(),
                    Booking.created_at.desc(),
                    Booking.id.desc(),
                )
                .offset(offset)
                .limit(limit)
                .all()
            )
            return cast(List[Booking], items), total
        except Exception as e:
            self.logger.error(f"Error listing payment history: {str(e)}")
            raise RepositoryException(f"Failed to list payment history: {str(e)}")

    def _scope_to_user(
        self, query: Query, role: RoleName, user_id: str, tutor_profile_id: Optional[str]
    ) -> Query:
        if role == RoleName.STUDENT:
            return query.filter(Booking.student_id == user_id)
        if role == RoleName.TUTOR:
            return query.filter(Booking.tutor_id == (tutor_profile_id or ""))
        return query

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.student),
            joinedload(Booking.tutor).joinedload(TutorProfile.user),
        )


def _conflict_details(clashes: List[Booking]) -> Dict[str, Any]:
    return {
        "conflicting_bookings": [
            {
                "booking_id": clash.id,
                "start_time": clash.start_time.isoformat(),
                "end_time": clash.end_time.isoformat(),
                "status": clash.status,
            }
            for clash in clashes
        ]
    }
