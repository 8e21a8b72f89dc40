# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_active_user, get_request_context, require_tutor
from .database import get_db
from .services import get_availability_service, get_booking_service, get_calendar_notifier

__all__ = [
    # Auth
    "get_current_active_user",
    "get_request_context",
    "require_tutor",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_calendar_notifier",
]
