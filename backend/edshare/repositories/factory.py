# backend/edshare/repositories/factory.py
"""
Repository Factory for the EdShare platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .tutor_profile_repository import TutorProfileRepository
from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services never construct
    repositories with ad-hoc arguments.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        """Create repository for booking operations."""
        return BookingRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> ConflictCheckerRepository:
        """Create repository for conflict checking queries."""
        return ConflictCheckerRepository(db)

    @staticmethod
    def create_tutor_profile_repository(db: Session) -> TutorProfileRepository:
        """Create repository for tutor profile and search queries."""
        return TutorProfileRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)
