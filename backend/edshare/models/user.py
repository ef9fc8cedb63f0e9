# backend/edshare/models/user.py
"""
User model for the EdShare platform.

Users are owned by the identity service; this table is the read-side
directory the booking core consults for names, contact details, role
and home coordinates.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value)
    is_active = Column(Boolean, nullable=False, default=True)

    # Home location (WGS84 decimal degrees)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tutor_profile = relationship("TutorProfile", back_populates="user", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('student', 'tutor', 'admin', 'employee')",
            name="ck_users_role",
        ),
        CheckConstraint("latitude IS NULL OR (latitude BETWEEN -90 AND 90)", name="ck_users_lat"),
        CheckConstraint(
            "longitude IS NULL OR (longitude BETWEEN -180 AND 180)", name="ck_users_lon"
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_name(self) -> RoleName:
        return RoleName(self.role)

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
