# backend/edshare/schemas/payment.py
"""Payment request and response schemas (Stripe PaymentIntents)."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from ._strict_base import StandardizedModel, StrictRequestModel
from .search import PaginationInfo


class PaymentIntentCreate(StrictRequestModel):
    booking_id: str


class PaymentIntentResponse(StandardizedModel):
    booking_id: str
    payment_intent_id: str
    client_secret: Optional[str] = None
    amount: Decimal
    currency: str
    status: str


class PaymentConfirmRequest(StrictRequestModel):
    booking_id: str
    payment_intent_id: str = Field(..., min_length=3, max_length=255)


class RefundRequest(StrictRequestModel):
    booking_id: str
    amount: Optional[Decimal] = Field(
        None, gt=0, description="Defaults to the booking's computed refund amount"
    )
    reason: Optional[str] = Field(None, max_length=255)


class RefundResponse(StandardizedModel):
    booking_id: str
    refund_id: str
    amount: Decimal
    status: str
    payment_status: str


class PaymentHistoryItem(StandardizedModel):
    """One booking's payment record as shown in the payment history."""

    booking_id: str
    subject: str
    booking_date: date
    start_time: time
    end_time: time
    status: str
    total_amount: Decimal
    payment_status: str
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_amount: Optional[Decimal] = None
    refunded_at: Optional[datetime] = None
    student_name: str
    tutor_name: str


class PaymentHistoryResponse(StandardizedModel):
    payments: List[PaymentHistoryItem]
    pagination: PaginationInfo
