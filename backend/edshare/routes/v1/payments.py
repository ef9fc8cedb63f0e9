# backend/edshare/routes/v1/payments.py
"""
Payment routes - API v1

Endpoints:
    POST /intents  - Create a Stripe PaymentIntent for a booking
    POST /confirm  - Verify a PaymentIntent and confirm the booking
    POST /refund   - Refund a paid booking (staff only)
    GET  /history  - Paginated payment history for the caller
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_booking_service,
    get_current_active_user,
    get_payment_service,
    require_roles,
)
from ...core.enums import RoleName
from ...core.exceptions import DomainException
from ...models.user import User
from ...schemas.booking import BookingResponse
from ...schemas.payment import (
    PaymentConfirmRequest,
    PaymentHistoryResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    RefundRequest,
    RefundResponse,
)
from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/intents", response_model=PaymentIntentResponse, status_code=status.HTTP_201_CREATED)
def create_payment_intent(
    request: PaymentIntentCreate = Body(...),
    current_user: User = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentIntentResponse:
    try:
        return payment_service.create_payment_intent(request.booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/confirm", response_model=BookingResponse)
def confirm_payment(
    request: PaymentConfirmRequest = Body(...),
    current_user: User = Depends(get_current_active_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """The booking is confirmed only after Stripe reports the payment succeeded."""
    try:
        booking = booking_service.confirm_payment(
            request.booking_id, current_user, request.payment_intent_id
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/refund", response_model=RefundResponse)
def refund_booking(
    request: RefundRequest = Body(...),
    current_user: User = Depends(require_roles(RoleName.ADMIN, RoleName.EMPLOYEE)),
    payment_service: PaymentService = Depends(get_payment_service),
) -> RefundResponse:
    try:
        return payment_service.refund(
            request.booking_id, current_user, amount=request.amount, reason=request.reason
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history", response_model=PaymentHistoryResponse)
def get_payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_active_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentHistoryResponse:
    try:
        return payment_service.get_payment_history(current_user, page=page, limit=limit)
    except DomainException as e:
        handle_domain_exception(e)
