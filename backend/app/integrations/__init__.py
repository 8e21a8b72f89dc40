"""External service integrations for the tutoring platform."""

from .google_calendar_client import (
    CalendarBooking,
    CalendarEvent,
    CalendarNotifier,
    FakeCalendarNotifier,
    GoogleCalendarClient,
    GoogleCalendarError,
)

__all__ = [
    "CalendarBooking",
    "CalendarEvent",
    "CalendarNotifier",
    "FakeCalendarNotifier",
    "GoogleCalendarClient",
    "GoogleCalendarError",
]
