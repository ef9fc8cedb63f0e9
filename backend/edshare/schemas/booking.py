# backend/edshare/schemas/booking.py
"""
Booking schemas for the EdShare platform.

Bookings are self-contained: the request carries the date and wall-clock
times directly. Range rules (order, 30-180 minutes, same day) are enforced
by the conflict checker so that they surface as domain validation errors.
"""

from datetime import date, datetime, time
from decimal import Decimal
import re
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ..core.enums import Board, ClassLevel, SessionMode, SessionType
from ..models.booking import BookingStatus
from ._strict_base import StandardizedModel, StrictRequestModel
from .search import PaginationInfo

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


def _parse_hhmm(value: object) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not HHMM_REGEX.fullmatch(candidate):
            raise ValueError(f"Invalid time format: {value}. Expected HH:MM format.")
        hour, minute = candidate.split(":")
        return time(int(hour), int(minute))
    return value


class BookingCreate(StrictRequestModel):
    """Student request to book a tutor for one slot."""

    tutor_id: str = Field(..., description="Tutor profile to book")
    session_type: SessionType = SessionType.REGULAR
    subject: str = Field(..., min_length=1, max_length=100)
    class_level: ClassLevel
    board: Board
    booking_date: date
    start_time: time = Field(..., description="HH:MM, platform wall clock")
    end_time: time = Field(..., description="HH:MM, same day as start_time")
    duration_minutes: int = Field(..., description="Must equal end_time - start_time")
    mode: SessionMode
    location: Optional[str] = Field(None, max_length=500)
    topics: List[str] = Field(default_factory=list, max_length=20)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "booking_date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return _parse_hhmm(v)

    @field_validator("subject")
    @classmethod
    def _strip_subject(cls, v: str) -> str:
        return v.strip()


class BookingStatusUpdate(StrictRequestModel):
    status: Literal["confirmed", "in_progress", "completed", "cancelled", "no_show"]
    reason: Optional[str] = Field(None, max_length=500)


class BookingCancel(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=500)


class BookingReschedule(StrictRequestModel):
    booking_date: date
    start_time: time
    end_time: time

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "booking_date")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return _parse_hhmm(v)


class PricingQuoteRequest(StrictRequestModel):
    tutor_id: str
    subject: str = Field(..., min_length=1, max_length=100)
    class_level: ClassLevel
    board: Board
    duration_minutes: int


class PricingSnapshotResponse(StandardizedModel):
    hourly_rate: Decimal
    duration_minutes: int
    base_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal


class BookingResponse(StandardizedModel):
    id: str
    tutor_id: str
    student_id: str
    session_type: str
    subject: str
    class_level: str
    board: str
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    mode: str
    location: Optional[str] = None
    topics: List[str] = Field(default_factory=list)
    status: BookingStatus

    hourly_rate: Decimal
    base_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    payment_status: str
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_amount: Optional[Decimal] = None

    cancellation_reason: Optional[str] = None
    cancelled_by_role: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refund_eligible: Optional[bool] = None
    refund_amount: Optional[Decimal] = None

    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BookingCancelResponse(StandardizedModel):
    booking: BookingResponse
    refund_amount: Decimal


class BookingListResponse(StandardizedModel):
    bookings: List[BookingResponse]
    pagination: PaginationInfo


class UpcomingSessionsResponse(StandardizedModel):
    upcoming_sessions: List[BookingResponse]


class BookedTimeSlot(StandardizedModel):
    booking_id: str
    start_time: time
    end_time: time
    status: str


class BookedTimesResponse(StandardizedModel):
    tutor_id: str
    booking_date: date
    booked: List[BookedTimeSlot]
