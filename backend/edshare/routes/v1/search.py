# backend/edshare/routes/v1/search.py
"""
Tutor discovery routes - API v1

Endpoints:
    GET /tutors/search                     → Proximity search with filters
    GET /tutors/{tutor_id}/booked-times    → Active booked ranges on a date
    GET /tutors/{tutor_id}                 → Public profile of a verified tutor
"""

from datetime import date
from decimal import Decimal
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service, get_search_service
from ...core.exceptions import DomainException
from ...schemas.booking import BookedTimesResponse
from ...schemas.search import TutorProfileResponse, TutorSearchFilters, TutorSearchResponse
from ...services.booking_service import BookingService
from ...services.search_service import TutorSearchService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["search-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/search", response_model=TutorSearchResponse)
def search_tutors(
    latitude: Optional[float] = Query(None, description="Searcher latitude"),
    longitude: Optional[float] = Query(None, description="Searcher longitude"),
    radius: Optional[float] = Query(None, description="Search radius in km (1-50, default 5)"),
    search: Optional[str] = Query(None, description="Free text over subjects and bio"),
    subject: Optional[str] = Query(None),
    class_level: Optional[str] = Query(None, alias="class"),
    board: Optional[str] = Query(None),
    teaching_mode: Optional[str] = Query(None),
    min_rating: Optional[float] = Query(None),
    max_price: Optional[Decimal] = Query(None),
    sort_by: Optional[str] = Query(None),
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    search_service: TutorSearchService = Depends(get_search_service),
) -> TutorSearchResponse:
    """
    Find verified, bookable tutors near a point.

    Filters are validated as one ``TutorSearchFilters``; an invalid
    combination is reported as a 422 validation problem.
    """
    raw = {
        "latitude": latitude,
        "longitude": longitude,
        "radius_km": radius,
        "search": search,
        "subject": subject,
        "class_level": class_level,
        "board": board,
        "teaching_mode": teaching_mode,
        "min_rating": min_rating,
        "max_price": max_price,
        "sort_by": sort_by,
        "page": page,
        "limit": limit,
    }
    # Unset parameters fall back to the model defaults
    filters = TutorSearchFilters(**{k: v for k, v in raw.items() if v is not None})
    try:
        return search_service.search_tutors(filters)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{tutor_id}/booked-times", response_model=BookedTimesResponse)
def get_booked_times(
    tutor_id: str,
    booking_date: date = Query(..., alias="date"),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookedTimesResponse:
    """Active bookings (scheduled, confirmed, in progress) for a tutor on a date."""
    try:
        return booking_service.get_booked_times(tutor_id, booking_date)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{tutor_id}", response_model=TutorProfileResponse)
def get_tutor_profile(
    tutor_id: str,
    search_service: TutorSearchService = Depends(get_search_service),
) -> TutorProfileResponse:
    """Public profile of a verified tutor, including weekly availability."""
    try:
        return search_service.get_tutor_profile(tutor_id)
    except DomainException as e:
        handle_domain_exception(e)
