# backend/edshare/models/tutor.py
"""
Tutor profile models for the EdShare platform.

A tutor profile extends a User with teaching attributes: the subjects
taught (with the classes, boards and hourly price for each), the modes
the tutor teaches in, the rating aggregate, KYC verification state, and
the tutor's declared calendar (weekly windows plus per-date overrides).

Business Rules:
    - Only verified profiles with bookings enabled are discoverable
    - Subject prices are snapshotted onto bookings; editing a price never
      changes an existing booking
"""

import logging
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import TeachingMode, VerificationStatus
from ..database import Base

logger = logging.getLogger(__name__)


class TutorProfile(Base):
    """
    Teaching profile attached to a tutor user.

    Attributes:
        id: Primary key (the "tutor id" used across the booking API)
        user_id: Owning user (one-to-one)
        bio: Free-text biography, searchable
        experience_years: Total years of teaching experience
        teaching_modes: Subset of {online, offline, both}
        rating_average: Average review rating (0-5)
        verification_status: KYC state; only "verified" is searchable
        is_available_for_booking: Tutor-controlled switch for new bookings
    """

    __tablename__ = "tutor_profiles"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    bio = Column(Text, nullable=True)
    experience_years = Column(Integer, nullable=False, default=0)
    teaching_modes = Column(JSON, nullable=False, default=lambda: [TeachingMode.BOTH.value])
    rating_average = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)
    verification_status = Column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value, index=True
    )
    is_available_for_booking = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="tutor_profile")
    subjects = relationship(
        "TutorSubject", back_populates="tutor_profile", cascade="all, delete-orphan"
    )
    availability_windows = relationship(
        "TutorAvailabilityWindow", back_populates="tutor_profile", cascade="all, delete-orphan"
    )
    availability_overrides = relationship(
        "TutorAvailabilityOverride", back_populates="tutor_profile", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("experience_years BETWEEN 0 AND 50", name="ck_tutor_experience_range"),
        CheckConstraint("rating_average BETWEEN 0 AND 5", name="ck_tutor_rating_range"),
        CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="ck_tutor_verification_status",
        ),
    )

    @property
    def is_searchable(self) -> bool:
        return bool(
            self.verification_status == VerificationStatus.VERIFIED.value
            and self.is_available_for_booking
        )

    def find_subject(self, name: str, class_level: str, board: str) -> Optional["TutorSubject"]:
        """Return the offering that covers subject+class+board, if any."""
        wanted = name.strip().lower()
        for subject in self.subjects:
            if (
                subject.name.lower() == wanted
                and class_level in (subject.classes or [])
                and board in (subject.boards or [])
            ):
                return subject
        return None

    def __repr__(self) -> str:
        return (
            f"<TutorProfile {self.id}: user={self.user_id}, "
            f"status={self.verification_status}, available={self.is_available_for_booking}>"
        )


class TutorSubject(Base):
    """A subject offering: one subject for a list of classes and boards at one price."""

    __tablename__ = "tutor_subjects"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_profile_id = Column(
        String(26), ForeignKey("tutor_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    classes = Column(JSON, nullable=False, default=list)
    boards = Column(JSON, nullable=False, default=list)
    price_per_hour = Column(Numeric(10, 2), nullable=False)

    tutor_profile = relationship("TutorProfile", back_populates="subjects")

    __table_args__ = (
        CheckConstraint("price_per_hour > 0", name="ck_tutor_subject_price_positive"),
    )

    def covers(self, class_level: Optional[str], board: Optional[str]) -> bool:
        if class_level and class_level not in (self.classes or []):
            return False
        if board and board not in (self.boards or []):
            return False
        return True

    def __repr__(self) -> str:
        return f"<TutorSubject {self.name} @ {self.price_per_hour}/hr>"


class TutorAvailabilityWindow(Base):
    """Recurring weekly window when the tutor is generally open (0 = Monday)."""

    __tablename__ = "tutor_availability_windows"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_profile_id = Column(
        String(26), ForeignKey("tutor_profiles.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(SmallInteger, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    tutor_profile = relationship("TutorProfile", back_populates="availability_windows")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_window_dow"),
        CheckConstraint("start_time < end_time", name="ck_availability_window_order"),
        Index("ix_availability_windows_tutor_dow", "tutor_profile_id", "day_of_week"),
    )


class TutorAvailabilityOverride(Base):
    """
    Ad-hoc calendar entry for one date.

    ``is_blackout`` marks the whole date closed; otherwise the entry opens
    an extra [start_time, end_time) window on that date.
    """

    __tablename__ = "tutor_availability_overrides"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tutor_profile_id = Column(
        String(26), ForeignKey("tutor_profiles.id", ondelete="CASCADE"), nullable=False
    )
    specific_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    is_blackout = Column(Boolean, nullable=False, default=False)
    reason = Column(String(255), nullable=True)

    tutor_profile = relationship("TutorProfile", back_populates="availability_overrides")

    __table_args__ = (
        CheckConstraint(
            "is_blackout OR (start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name="ck_availability_override_window",
        ),
        Index("ix_availability_overrides_tutor_date", "tutor_profile_id", "specific_date"),
    )


__all__: List[str] = [
    "TutorProfile",
    "TutorSubject",
    "TutorAvailabilityWindow",
    "TutorAvailabilityOverride",
]
