# backend/edshare/schemas/search.py
"""
Tutor search schemas.

``TutorSearchFilters`` is the single, explicit description of every search
knob and its default; the route builds one from query parameters and the
search service consumes it unchanged.
"""

from datetime import time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.config import settings
from ..core.enums import Board, ClassLevel, SearchSortKey, TeachingMode
from ._strict_base import StandardizedModel, StrictRequestModel


class TutorSearchFilters(StrictRequestModel):
    """
    Filters for proximity tutor search.

    Defaults:
        radius_km: 5 km (1-50)
        sort_by: rating (descending)
        page: 1, limit: 10 (max 50)
        every other filter: unset, which matches everything
    """

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    radius_km: float = Field(
        default=settings.search_default_radius_km, ge=1, le=settings.search_max_radius_km
    )
    search: Optional[str] = Field(
        None, max_length=100, description="Free text; substring match on subject names or bio"
    )
    subject: Optional[str] = Field(
        None, max_length=100, description="Exact subject name, case-insensitive"
    )
    class_level: Optional[ClassLevel] = None
    board: Optional[Board] = None
    teaching_mode: Optional[TeachingMode] = None
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    max_price: Optional[Decimal] = Field(None, ge=0)
    sort_by: SearchSortKey = SearchSortKey.RATING
    page: int = Field(default=1, ge=1)
    limit: int = Field(
        default=settings.search_default_page_size, ge=1, le=settings.search_max_page_size
    )

    @field_validator("search", "subject", mode="before")
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @model_validator(mode="after")
    def _coordinates_together(self) -> "TutorSearchFilters":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class SubjectOffering(StandardizedModel):
    name: str
    classes: List[str]
    boards: List[str]
    price_per_hour: Decimal


class TutorSearchResult(StandardizedModel):
    """A tutor candidate augmented with its distance from the searcher."""

    tutor_id: str
    user_id: str
    first_name: str
    last_name: str
    bio: Optional[str] = None
    teaching_modes: List[str]
    rating_average: float
    rating_count: int
    experience_years: int
    subjects: List[SubjectOffering]
    min_price: Decimal
    max_price: Decimal
    distance_km: Optional[float] = Field(None, description="Rounded to 2 decimals")


class PaginationInfo(StandardizedModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> "PaginationInfo":
        total_pages = (total_count + limit - 1) // limit if total_count else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            has_next=page * limit < total_count,
            has_prev=page > 1,
        )


class TutorSearchResponse(StandardizedModel):
    results: List[TutorSearchResult]
    pagination: PaginationInfo


class AvailabilityWindowOut(StandardizedModel):
    day_of_week: int = Field(..., description="0 = Monday")
    start_time: time
    end_time: time


class TutorProfileResponse(StandardizedModel):
    """Public view of a verified tutor."""

    tutor_id: str
    user_id: str
    first_name: str
    last_name: str
    bio: Optional[str] = None
    teaching_modes: List[str]
    rating_average: float
    rating_count: int
    experience_years: int
    is_available_for_booking: bool
    subjects: List[SubjectOffering]
    weekly_availability: List[AvailabilityWindowOut]


class Coordinate(StrictRequestModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class DistanceMatrixRequest(StrictRequestModel):
    origins: List[Coordinate] = Field(..., min_length=1, max_length=25)
    destinations: List[Coordinate] = Field(..., min_length=1, max_length=25)


class DistanceMatrixResponse(StandardizedModel):
    distances_km: List[List[float]] = Field(
        ..., description="One row per origin, one column per destination, rounded to 2 decimals"
    )
