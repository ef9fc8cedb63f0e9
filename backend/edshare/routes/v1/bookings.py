# backend/edshare/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST /                          - Create a booking (students)
    GET /                           - List bookings with filters and pagination
    GET /upcoming                   - Upcoming sessions for the next N days
    POST /pricing-quote             - Price a prospective booking
    GET /{booking_id}               - Full booking details
    PUT /{booking_id}/status        - Move a booking along its lifecycle
    PUT /{booking_id}/cancel        - Cancel a booking
    PUT /{booking_id}/reschedule    - Move a booking to a new slot
"""

import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service, get_current_active_user, require_roles
from ...core.enums import RoleName
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.booking import (
    BookingCancel,
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    BookingStatusUpdate,
    PricingQuoteRequest,
    PricingSnapshotResponse,
    UpcomingSessionsResponse,
)
from ...schemas.search import PaginationInfo
from ...services.booking_service import MAX_UPCOMING_DAYS, BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# Static routes (no path parameters)
# ============================================================================


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Tutor not found"},
        409: {"description": "Time slot not available"},
    },
)
def create_booking(
    booking_data: BookingCreate = Body(...),
    current_user: User = Depends(require_roles(RoleName.STUDENT)),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.create_booking(current_user, booking_data)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=BookingListResponse)
def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """Bookings visible to the caller, newest session first."""
    try:
        bookings, total = booking_service.list_bookings_for_user(
            current_user, status=status_filter, page=page, limit=limit
        )
        return BookingListResponse(
            bookings=[BookingResponse.model_validate(b) for b in bookings],
            pagination=PaginationInfo.build(page, limit, total),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/upcoming", response_model=UpcomingSessionsResponse)
def get_upcoming_sessions(
    days: int = Query(7, ge=1, le=MAX_UPCOMING_DAYS),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> UpcomingSessionsResponse:
    try:
        bookings = booking_service.get_upcoming_sessions(current_user, days=days)
        return UpcomingSessionsResponse(
            upcoming_sessions=[BookingResponse.model_validate(b) for b in bookings]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/pricing-quote", response_model=PricingSnapshotResponse)
def get_pricing_quote(
    quote_request: PricingQuoteRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> PricingSnapshotResponse:
    try:
        snapshot = booking_service.quote(
            quote_request.tutor_id,
            quote_request.subject,
            quote_request.class_level.value,
            quote_request.board.value,
            quote_request.duration_minutes,
        )
        return PricingSnapshotResponse.model_validate(snapshot)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# Dynamic routes (with path parameters - placed last)
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse, responses={404: {"description": "Booking not found"}})
def get_booking(
    booking_id: str,
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.model_validate(
            booking_service.get_booking_for_user(booking_id, current_user)
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Tutor/staff lifecycle updates; ``cancelled`` follows the cancellation rules."""
    try:
        booking = booking_service.update_booking_status(
            booking_id, current_user, update.status, update.reason
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
def cancel_booking(
    booking_id: str,
    cancel_data: BookingCancel = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCancelResponse:
    """Cancel a booking at least two hours before it starts."""
    try:
        booking, refund_amount = booking_service.cancel_booking(
            booking_id, current_user, cancel_data.reason
        )
        return BookingCancelResponse(
            booking=BookingResponse.model_validate(booking), refund_amount=refund_amount
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    booking_id: str,
    reschedule: BookingReschedule = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = booking_service.reschedule_booking(
            booking_id,
            current_user,
            reschedule.booking_date,
            reschedule.start_time,
            reschedule.end_time,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
