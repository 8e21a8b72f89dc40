# backend/app/schemas/__init__.py
"""
Pydantic schemas for the tutoring platform.

Request models validate shape only; business rules (duration bounds,
overlaps, state transitions) live in the services.
"""

from .availability import (
    AvailabilityResponse,
    AvailabilitySummary,
    AvailabilityUpdate,
    DateOverrideCreate,
    DateOverrideResponse,
    TimeSlot,
    TutorWithAvailability,
)
from .booking import (
    AvailableSlot,
    AvailableSlotsResponse,
    BookingAccept,
    BookingCreate,
    BookingFilters,
    BookingReason,
    BookingResponse,
    BookingUpdate,
    UserSummary,
)

__all__ = [
    # Availability
    "AvailabilityResponse",
    "AvailabilitySummary",
    "AvailabilityUpdate",
    "DateOverrideCreate",
    "DateOverrideResponse",
    "TimeSlot",
    "TutorWithAvailability",
    # Booking
    "AvailableSlot",
    "AvailableSlotsResponse",
    "BookingAccept",
    "BookingCreate",
    "BookingFilters",
    "BookingReason",
    "BookingResponse",
    "BookingUpdate",
    "UserSummary",
]
