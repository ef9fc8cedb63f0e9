# backend/tests/conftest.py
"""
Pytest configuration for the EdShare backend.

Settings are read once at import time, so the test environment is set up
BEFORE any edshare import. Every test runs against a fresh in-memory
SQLite database; Redis is unset so booking locks degrade open.
"""

import os

# CRITICAL: Set test configuration BEFORE any edshare imports!
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["SMS_ENABLED"] = "false"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["NOTIFICATION_BACKOFF_SECONDS"] = "0"
os.environ["NOTIFICATION_BACKGROUND"] = "false"

# Mock Resend globally so no test can ever send a real email
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

from datetime import date, datetime, time
from decimal import Decimal
import itertools
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from edshare.api.dependencies.database import get_db
from edshare.auth import create_access_token
from edshare.core.enums import RoleName, VerificationStatus
from edshare.core.timezone_utils import get_platform_timezone
from edshare.database import Base
from edshare.events.publisher import EventPublisher
from edshare.main import create_app
from edshare.models.booking import Booking
from edshare.models.tutor import TutorProfile, TutorSubject
from edshare.models.user import User

# Monday 7 Jan 2030, 09:00 platform time
FIXED_NOW = get_platform_timezone().localize(datetime(2030, 1, 7, 9, 0))
SESSION_DATE = date(2030, 1, 7)

# Connaught Place, New Delhi
DELHI = (28.6139, 77.2090)

DEFAULT_SUBJECTS: List[Dict[str, Any]] = [
    {
        "name": "Mathematics",
        "classes": ["8", "9", "10"],
        "boards": ["CBSE"],
        "price_per_hour": Decimal("600.00"),
    }
]

test_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


@pytest.fixture
def db() -> Iterator[Session]:
    """Fresh schema per test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def session_date() -> date:
    return SESSION_DATE


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = itertools.count(1)

    def _make(role: RoleName = RoleName.STUDENT, **overrides: Any) -> User:
        n = next(counter)
        fields: Dict[str, Any] = {
            "email": f"{role.value}{n}@example.com",
            "phone": f"+9198000000{n:02d}",
            "first_name": role.value.title(),
            "last_name": f"User{n}",
            "role": role.value,
            "is_active": True,
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_tutor(db: Session, make_user: Callable[..., User]) -> Callable[..., TutorProfile]:
    def _make(
        *,
        latitude: Optional[float] = DELHI[0],
        longitude: Optional[float] = DELHI[1],
        subjects: Optional[List[Dict[str, Any]]] = None,
        teaching_modes: Optional[List[str]] = None,
        verification_status: str = VerificationStatus.VERIFIED.value,
        is_available_for_booking: bool = True,
        rating_average: float = 4.5,
        experience_years: int = 5,
        bio: Optional[str] = None,
        first_name: str = "Tutor",
    ) -> TutorProfile:
        user = make_user(
            RoleName.TUTOR, latitude=latitude, longitude=longitude, first_name=first_name
        )
        profile = TutorProfile(
            user_id=user.id,
            bio=bio,
            experience_years=experience_years,
            teaching_modes=teaching_modes or ["both"],
            rating_average=rating_average,
            rating_count=10,
            verification_status=verification_status,
            is_available_for_booking=is_available_for_booking,
        )
        for offering in subjects if subjects is not None else DEFAULT_SUBJECTS:
            profile.subjects.append(TutorSubject(**offering))
        db.add(profile)
        db.commit()
        db.refresh(profile)
        db.refresh(user)
        return profile

    return _make


@pytest.fixture
def student(make_user: Callable[..., User]) -> User:
    return make_user(RoleName.STUDENT, first_name="Aarav", last_name="Sharma")


@pytest.fixture
def tutor(make_tutor: Callable[..., TutorProfile]) -> TutorProfile:
    return make_tutor(first_name="Priya")


@pytest.fixture
def admin(make_user: Callable[..., User]) -> User:
    return make_user(RoleName.ADMIN, first_name="Admin")


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    """Insert a booking row directly, bypassing the service rules."""

    def _make(
        student: User,
        tutor: TutorProfile,
        *,
        booking_date: date = SESSION_DATE,
        start_time: time = time(12, 0),
        end_time: time = time(13, 0),
        status: str = "scheduled",
        total_amount: Decimal = Decimal("708.00"),
        **overrides: Any,
    ) -> Booking:
        fields: Dict[str, Any] = {
            "student_id": student.id,
            "tutor_id": tutor.id,
            "subject": "Mathematics",
            "class_level": "9",
            "board": "CBSE",
            "booking_date": booking_date,
            "start_time": start_time,
            "end_time": end_time,
            "duration_minutes": 60,
            "mode": "online",
            "status": status,
            "hourly_rate": Decimal("600.00"),
            "base_amount": Decimal("600.00"),
            "tax_amount": Decimal("108.00"),
            "total_amount": total_amount,
        }
        fields.update(overrides)
        booking = Booking(**fields)
        db.add(booking)
        db.commit()
        return booking

    return _make


@pytest.fixture
def silent_publisher() -> EventPublisher:
    """Publisher with no handlers, for service tests that do not care about notifications."""
    return EventPublisher()


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    app = create_app()

    def override_get_db() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    return auth_headers_for
