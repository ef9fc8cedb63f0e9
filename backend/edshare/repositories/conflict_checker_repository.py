# backend/edshare/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the EdShare platform

Read-only queries the conflict checker needs: active bookings on a date,
the tutor's weekly windows for a weekday, and per-date calendar overrides.
"""

from datetime import date
import logging
from typing import List, Optional, cast

from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.tutor import TutorAvailabilityOverride, TutorAvailabilityWindow, TutorProfile
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """
    Repository for conflict checking data access.

    Works exclusively with booking data and the tutor's declared calendar.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Booking Conflict Queries

    def get_bookings_for_conflict_check(
        self, tutor_id: str, check_date: date, exclude_booking_id: Optional[str] = None
    ) -> List[Booking]:
        """
        Active bookings for a tutor on a date, ordered by start time.

        Args:
            tutor_id: The tutor to check
            check_date: The date to check for conflicts
            exclude_booking_id: Optional booking ID to exclude from results
        """
        try:
            query = (
                self.db.query(Booking)
                .options(joinedload(Booking.student))
                .filter(
                    Booking.tutor_id == tutor_id,
                    Booking.booking_date == check_date,
                    Booking.status.in_(list(ACTIVE_STATUSES)),
                )
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.start_time).all())
        except Exception as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    # Calendar Queries

    def get_tutor_profile(self, tutor_id: str) -> Optional[TutorProfile]:
        return cast(
            Optional[TutorProfile],
            self.db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first(),
        )

    def count_declared_windows(self, tutor_id: str) -> int:
        """Weekly windows plus non-blackout overrides the tutor has ever declared."""
        try:
            weekly = (
                self.db.query(TutorAvailabilityWindow)
                .filter(TutorAvailabilityWindow.tutor_profile_id == tutor_id)
                .count()
            )
            extra = (
                self.db.query(TutorAvailabilityOverride)
                .filter(
                    TutorAvailabilityOverride.tutor_profile_id == tutor_id,
                    TutorAvailabilityOverride.is_blackout.is_(False),
                )
                .count()
            )
            return int(weekly + extra)
        except Exception as e:
            self.logger.error(f"Error counting declared windows: {str(e)}")
            raise RepositoryException(f"Failed to read tutor calendar: {str(e)}")

    def get_weekly_windows(self, tutor_id: str, day_of_week: int) -> List[TutorAvailabilityWindow]:
        try:
            return cast(
                List[TutorAvailabilityWindow],
                self.db.query(TutorAvailabilityWindow)
                .filter(
                    TutorAvailabilityWindow.tutor_profile_id == tutor_id,
                    TutorAvailabilityWindow.day_of_week == day_of_week,
                )
                .order_by(TutorAvailabilityWindow.start_time)
                .all(),
            )
        except Exception as e:
            self.logger.error(f"Error getting weekly windows: {str(e)}")
            raise RepositoryException(f"Failed to read tutor calendar: {str(e)}")

    def get_overrides_for_date(
        self, tutor_id: str, target_date: date
    ) -> List[TutorAvailabilityOverride]:
        try:
            return cast(
                List[TutorAvailabilityOverride],
                self.db.query(TutorAvailabilityOverride)
                .filter(
                    TutorAvailabilityOverride.tutor_profile_id == tutor_id,
                    TutorAvailabilityOverride.specific_date == target_date,
                )
                .all(),
            )
        except Exception as e:
            self.logger.error(f"Error getting calendar overrides: {str(e)}")
            raise RepositoryException(f"Failed to read tutor calendar: {str(e)}")
