"""
Database models for the EdShare platform.

- User directory (students, tutors, staff)
- Tutor profiles, subject offerings and declared calendars
- Bookings with pricing, payment and cancellation records
"""

from .booking import ACTIVE_STATUSES, Booking, BookingStatus
from .tutor import (
    TutorAvailabilityOverride,
    TutorAvailabilityWindow,
    TutorProfile,
    TutorSubject,
)
from .user import User

__all__ = [
    "ACTIVE_STATUSES",
    "Booking",
    "BookingStatus",
    "TutorAvailabilityOverride",
    "TutorAvailabilityWindow",
    "TutorProfile",
    "TutorSubject",
    "User",
]
