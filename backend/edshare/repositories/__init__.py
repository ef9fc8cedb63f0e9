# backend/edshare/repositories/__init__.py
"""
Repository layer for the EdShare platform.

Repositories own all SQLAlchemy queries; services never query the session
directly.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .tutor_profile_repository import TutorProfileRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "RepositoryFactory",
    "TutorProfileRepository",
    "UserRepository",
]
