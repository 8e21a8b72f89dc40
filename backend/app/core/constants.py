"""Application-wide constants for the tutoring platform."""

from __future__ import annotations

# API metadata
BRAND_NAME = "PeerTutor"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Scheduling backend for peer tutoring: availability, bookings, slots"
API_VERSION = "1.0.0"

# Booking duration constraints
MIN_BOOKING_DURATION_MINUTES = 15
MAX_BOOKING_DURATION_MINUTES = 180
DEFAULT_BOOKING_DURATION_MINUTES = 60

# Stride used when walking an open window for bookable slots.
# Finer than the minimum booking length.
DEFAULT_SLOT_STEP_MINUTES = 30

# Text constraints
MAX_SUBJECT_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_REASON_LENGTH = 500

# Availability defaults for lazily created records
DEFAULT_TIMEZONE = "UTC"
DEFAULT_SESSION_DURATIONS = [30, 60]

# Day of week mapping (0=Sunday .. 6=Saturday)
DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# HH:mm, 24-hour clock
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"
MINUTES_PER_DAY = 24 * 60

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 500
