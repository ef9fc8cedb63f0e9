# backend/edshare/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_active_user, get_current_user_id, require_roles
from .database import get_db
from .services import (
    get_booking_service,
    get_payment_service,
    get_pricing_service,
    get_search_service,
)

__all__ = [
    # Auth
    "get_current_user_id",
    "get_current_active_user",
    "require_roles",
    # Database
    "get_db",
    # Services
    "get_booking_service",
    "get_payment_service",
    "get_pricing_service",
    "get_search_service",
]
