# backend/edshare/core/enums.py
"""
Core enums for the EdShare platform.

This module contains enumeration types used throughout the application
for type safety and consistency.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles an authenticated caller can act as."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"
    EMPLOYEE = "employee"

    @property
    def is_staff(self) -> bool:
        return self in (RoleName.ADMIN, RoleName.EMPLOYEE)


class VerificationStatus(str, Enum):
    """KYC verification state of a tutor profile."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class TeachingMode(str, Enum):
    """How a tutor is willing to teach."""

    ONLINE = "online"
    OFFLINE = "offline"
    BOTH = "both"


class SessionMode(str, Enum):
    """How a single session is delivered."""

    ONLINE = "online"
    OFFLINE = "offline"


class SessionType(str, Enum):
    DEMO = "demo"
    REGULAR = "regular"
    ASSESSMENT = "assessment"
    GROUP = "group"


class ClassLevel(str, Enum):
    """School classes supported by the marketplace."""

    LKG = "LKG"
    UKG = "UKG"
    CLASS_1 = "1"
    CLASS_2 = "2"
    CLASS_3 = "3"
    CLASS_4 = "4"
    CLASS_5 = "5"
    CLASS_6 = "6"
    CLASS_7 = "7"
    CLASS_8 = "8"
    CLASS_9 = "9"
    CLASS_10 = "10"
    CLASS_11 = "11"
    CLASS_12 = "12"


class Board(str, Enum):
    """Education boards supported by the marketplace."""

    CBSE = "CBSE"
    ICSE = "ICSE"
    STATE_BOARD = "State Board"
    IB = "IB"
    IGCSE = "IGCSE"
    NIOS = "NIOS"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class SearchSortKey(str, Enum):
    """Orderings accepted by tutor search."""

    RATING = "rating"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    DISTANCE = "distance"
    EXPERIENCE = "experience"
