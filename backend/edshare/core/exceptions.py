# backend/edshare/core/exceptions.py
"""
Domain-specific exceptions for the EdShare platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception knows whether it describes a bad request (4xx) or
a failure on our side (5xx) through ``is_client_error``.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class CollaboratorFailure(ServiceException):
    """Raised when an external collaborator (gateway, email, SMS) fails."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        collaborator: str,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or f"{collaborator} request failed",
            code="COLLABORATOR_FAILURE",
            details={"collaborator": collaborator, **(details or {})},
        )
        self.collaborator = collaborator


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class InvalidTransitionException(BusinessRuleException):
    """Raised when a status change is not permitted for the state or role."""

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        *,
        role: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Cannot change booking status from {current_status} to {requested_status}"
            if role:
                message = f"{message} as {role}"
        super().__init__(
            message=message,
            code="INVALID_TRANSITION",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
                "role": role,
            },
        )


class NotCancellableException(BusinessRuleException):
    """Raised when a booking is cancelled inside the lead-time window."""

    def __init__(self, required_hours: int, hours_until_session: float):
        super().__init__(
            message=(
                "Booking cannot be cancelled. Must be cancelled at least "
                f"{required_hours} hours before the session."
            ),
            code="NOT_CANCELLABLE",
            details={
                "required_hours": required_hours,
                "hours_until_session": round(max(hours_until_session, 0.0), 2),
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
