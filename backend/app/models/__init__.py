"""
Database models for the tutoring platform.

- User: directory entry for students, tutors and admins
- TutorAvailability / AvailabilityDateOverride: recurring schedule and date overrides
- Booking: sessions between a student and a tutor
"""

from .availability import AvailabilityDateOverride, TutorAvailability
from .booking import ACTIVE_STATUSES, ALLOWED_TRANSITIONS, TERMINAL_STATUSES, Booking, BookingStatus
from .user import User

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "AvailabilityDateOverride",
    "Booking",
    "BookingStatus",
    "TERMINAL_STATUSES",
    "TutorAvailability",
    "User",
]
