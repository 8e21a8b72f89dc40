# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the tutoring platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a stable machine-readable ``code``.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status


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

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedException(DomainException):
    """Raised when the bearer token is missing, invalid, or names no user."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Could not validate credentials", code: str = "NOT_AUTHENTICATED"):
        super().__init__(message, code=code)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message or "An error occurred processing your request",
            "code": self.code,
            "details": self.details if self.details else {},
        }


# Specific business exceptions


class BookingConflictException(ValidationException):
    """Raised when a booking overlaps another active booking of the same tutor."""

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


class SlotUnavailableException(ValidationException):
    """Raised when the tutor is not open for the requested window."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "Tutor is not available at the requested time",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class InvalidBookingTransitionException(ValidationException):
    """Raised when a booking is not in a state the transition accepts."""

    def __init__(self, action: str, current_status: str, allowed: Iterable[str]):
        allowed_list = sorted(allowed)
        super().__init__(
            message=f"Cannot {action} a booking with status '{current_status}'",
            code="INVALID_BOOKING_TRANSITION",
            details={
                "action": action,
                "current_status": current_status,
                "allowed_statuses": allowed_list,
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
