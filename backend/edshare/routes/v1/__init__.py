# backend/edshare/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, location, payments, search

__all__ = ["bookings", "location", "payments", "search"]
