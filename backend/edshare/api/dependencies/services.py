# backend/edshare/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets fresh service instances bound to its database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService
from ...services.pricing_service import PricingService
from ...services.search_service import TutorSearchService
from .database import get_db


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_search_service(db: Session = Depends(get_db)) -> TutorSearchService:
    return TutorSearchService(db)


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    return PricingService(db)


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)
