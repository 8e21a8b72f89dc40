# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations import CalendarNotifier, GoogleCalendarClient
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _calendar_client_singleton() -> GoogleCalendarClient:
    """One client per process so the access token cache is shared."""
    return GoogleCalendarClient.from_settings(settings)


def get_calendar_notifier() -> Optional[CalendarNotifier]:
    """Calendar sink for booking sync, or None when sync is disabled."""
    if not settings.google_calendar_configured:
        return None
    return _calendar_client_singleton()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Get AvailabilityService instance."""
    return AvailabilityService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    calendar_notifier: Optional[CalendarNotifier] = Depends(get_calendar_notifier),
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        availability_service: Shares the request's session
        calendar_notifier: Google Calendar client, None when not configured

    Returns:
        BookingService instance
    """
    return BookingService(db, availability_service=availability_service, calendar_notifier=calendar_notifier)
