# backend/edshare/services/conflict_checker.py
"""
Conflict Checker Service for the EdShare platform

Handles all booking conflict detection and validation including:
- Checking if a slot overlaps an active booking of the same tutor
- Checking the slot against the tutor's declared calendar
- Validating time ranges (order, same day, 30-180 minutes)

Intervals are half-open: [s1, e1) and [s2, e2) overlap iff s1 < e2 and s2 < e1,
so back-to-back sessions never conflict.
"""

from datetime import date, datetime, time
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    ValidationException,
)
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.tutor import TutorAvailabilityOverride, TutorAvailabilityWindow
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    return start1 < end2 and start2 < end1


def minutes_between(start_time: time, end_time: time) -> int:
    start = datetime.combine(date.min, start_time)
    end = datetime.combine(date.min, end_time)
    return int((end - start).total_seconds() // 60)


def find_conflicts(
    tutor_id: str,
    booking_date: date,
    start_time: time,
    end_time: time,
    existing_bookings: Iterable[Booking],
    exclude_booking_id: Optional[str] = None,
) -> List[Booking]:
    """Active bookings of the same tutor on the same date that overlap the slot."""
    return [
        booking
        for booking in existing_bookings
        if booking.id != exclude_booking_id
        and booking.tutor_id == tutor_id
        and booking.booking_date == booking_date
        and booking.status in ACTIVE_STATUSES
        and intervals_overlap(start_time, end_time, booking.start_time, booking.end_time)
    ]


def fits_declared_calendar(
    start_time: time,
    end_time: time,
    weekly_windows: Sequence[TutorAvailabilityWindow],
    overrides: Sequence[TutorAvailabilityOverride],
    has_declared_calendar: bool,
) -> bool:
    """
    Whether the slot lies inside one open window of the tutor's calendar.

    A blackout override closes the whole date. A tutor who never declared
    any window is treated as open.
    """
    if any(override.is_blackout for override in overrides):
        return False
    if not has_declared_calendar:
        return True

    open_windows = [(w.start_time, w.end_time) for w in weekly_windows]
    open_windows.extend(
        (o.start_time, o.end_time)
        for o in overrides
        if not o.is_blackout and o.start_time is not None and o.end_time is not None
    )
    return any(
        window_start <= start_time and end_time <= window_end
        for window_start, window_end in open_windows
    )


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts and time validation.

    Centralizes conflict detection so booking creation and rescheduling
    apply identical rules.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("validate_time_range")
    def validate_time_range(
        self,
        start_time: time,
        end_time: time,
        duration_minutes: Optional[int] = None,
    ) -> int:
        """
        Validate a same-day time range and return its length in minutes.

        Raises:
            ValidationException: on reversed/cross-midnight ranges, lengths
                outside the allowed bounds, or a declared duration that does
                not match end - start
        """
        if end_time <= start_time:
            raise ValidationException(
                "End time must be after start time on the same day",
                code="INVALID_TIME_RANGE",
                details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
            )

        actual_minutes = minutes_between(start_time, end_time)
        min_minutes = settings.min_session_minutes
        max_minutes = settings.max_session_minutes
        if not min_minutes <= actual_minutes <= max_minutes:
            raise ValidationException(
                f"Duration must be between {min_minutes} and {max_minutes} minutes",
                code="INVALID_DURATION",
                details={"duration_minutes": actual_minutes},
            )

        if duration_minutes is not None and duration_minutes != actual_minutes:
            raise ValidationException(
                "Duration does not match the selected start and end times",
                code="DURATION_MISMATCH",
                details={
                    "duration_minutes": duration_minutes,
                    "calculated_minutes": actual_minutes,
                },
            )
        return actual_minutes

    def is_slot_free(
        self,
        tutor_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        existing_bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        True when the slot clears both the booking overlap check and the
        tutor's declared calendar.
        """
        if find_conflicts(
            tutor_id, booking_date, start_time, end_time, existing_bookings, exclude_booking_id
        ):
            return False
        return self.is_within_calendar(tutor_id, booking_date, start_time, end_time)

    @BaseService.measure_operation("check_calendar")
    def is_within_calendar(
        self, tutor_id: str, booking_date: date, start_time: time, end_time: time
    ) -> bool:
        overrides = self.repository.get_overrides_for_date(tutor_id, booking_date)
        weekly = self.repository.get_weekly_windows(tutor_id, booking_date.weekday())
        has_declared = self.repository.count_declared_windows(tutor_id) > 0
        return fits_declared_calendar(start_time, end_time, weekly, overrides, has_declared)

    @BaseService.measure_operation("check_booking_conflicts")
    def get_conflicting_bookings(
        self,
        tutor_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Structured details of every active booking overlapping the slot."""
        bookings = self.repository.get_bookings_for_conflict_check(
            tutor_id, booking_date, exclude_booking_id
        )
        conflicts = [
            {
                "booking_id": booking.id,
                "start_time": booking.start_time.isoformat(),
                "end_time": booking.end_time.isoformat(),
                "status": booking.status,
            }
            for booking in find_conflicts(
                tutor_id, booking_date, start_time, end_time, bookings, exclude_booking_id
            )
        ]
        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {tutor_id} "
                f"on {booking_date} between {start_time}-{end_time}"
            )
        return conflicts

    def ensure_slot_available(
        self,
        tutor_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """
        Raise unless the slot is free.

        Raises:
            BookingConflictException: overlaps an active booking
            ConflictException: outside the tutor's declared calendar
        """
        conflicts = self.get_conflicting_bookings(
            tutor_id, booking_date, start_time, end_time, exclude_booking_id
        )
        if conflicts:
            raise BookingConflictException(
                message="Time slot is already booked",
                details={"conflicting_bookings": conflicts},
            )
        if not self.is_within_calendar(tutor_id, booking_date, start_time, end_time):
            raise ConflictException(
                "Tutor is not available at the requested time",
                code="TUTOR_UNAVAILABLE",
                details={
                    "booking_date": booking_date.isoformat(),
                    "start_time": start_time.isoformat(),
                    "end_time": end_time.isoformat(),
                },
            )

    @BaseService.measure_operation("get_booked_times")
    def get_booked_times_for_date(self, tutor_id: str, target_date: date) -> List[Dict[str, Any]]:
        """Active booked ranges for a tutor on a date, ordered by start time."""
        bookings = self.repository.get_bookings_for_conflict_check(tutor_id, target_date)
        return [
            {
                "booking_id": booking.id,
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "status": booking.status,
            }
            for booking in bookings
        ]
