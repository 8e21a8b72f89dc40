# backend/app/schemas/availability.py
"""
Availability schemas for the tutoring platform.

Shape validation lives here (HH:mm format, day keys, duration options).
Ordering and overlap rules for a day's slots are business rules enforced by
AvailabilityService so the error can name the offending day.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, cast

from pydantic import ConfigDict, Field, field_validator
import pytz

from ..core.constants import (
    MAX_BOOKING_DURATION_MINUTES,
    MAX_SUBJECT_LENGTH,
    MIN_BOOKING_DURATION_MINUTES,
    TIME_OF_DAY_PATTERN,
)
from ._strict_base import StrictModel, StrictRequestModel


class TimeSlot(StrictModel):
    """Wall-clock window ``[start_time, end_time)`` in 24-hour HH:mm."""

    start_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN, examples=["09:00"])
    end_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN, examples=["17:00"])


def _validate_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if value not in pytz.all_timezones_set:
        raise ValueError(f"Unknown timezone: {value}")
    return value


class AvailabilityUpdate(StrictRequestModel):
    """
    Partial update of a tutor's availability.

    Fields left out are untouched; fields present replace the stored value
    wholesale. Weekly schedule days not mentioned keep their slots.
    """

    weekly_schedule: Optional[Dict[int, List[TimeSlot]]] = Field(
        None, description="Day of week (0=Sunday..6=Saturday) to slots"
    )
    timezone: Optional[str] = Field(None, description="IANA timezone name")
    subjects: Optional[List[str]] = None
    session_durations: Optional[List[int]] = None
    is_active: Optional[bool] = None

    @field_validator("weekly_schedule")
    @classmethod
    def _check_day_keys(cls, v: Optional[Dict[int, List[TimeSlot]]]) -> Optional[Dict[int, List[TimeSlot]]]:
        if v is None:
            return v
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Day of week must be between 0 and 6, got {day}")
        return v

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_timezone(v)

    @field_validator("subjects")
    @classmethod
    def _clean_subjects(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned: List[str] = []
        for subject in v:
            item = subject.strip()
            if not item:
                raise ValueError("Subjects cannot be empty")
            if len(item) > MAX_SUBJECT_LENGTH:
                raise ValueError(f"Subjects are limited to {MAX_SUBJECT_LENGTH} characters")
            if item not in cleaned:
                cleaned.append(item)
        return cleaned

    @field_validator("session_durations")
    @classmethod
    def _check_durations(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return v
        for minutes in v:
            if not MIN_BOOKING_DURATION_MINUTES <= minutes <= MAX_BOOKING_DURATION_MINUTES:
                raise ValueError(
                    f"Session durations must be between {MIN_BOOKING_DURATION_MINUTES} "
                    f"and {MAX_BOOKING_DURATION_MINUTES} minutes"
                )
        return sorted(set(v))


class DateOverrideCreate(StrictRequestModel):
    """Replace the weekly schedule for one calendar date."""

    date: date
    available: bool
    slots: List[TimeSlot] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def _strip_time_of_day(cls, v: object) -> object:
        if isinstance(v, datetime):
            return v.date()
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v


class DateOverrideResponse(StrictModel):
    date: date
    available: bool
    slots: List[TimeSlot]


class AvailabilitySummary(StrictModel):
    """Projection attached to each tutor in the directory."""

    timezone: str
    subjects: List[str]
    session_durations: List[int]
    is_active: bool

    @classmethod
    def from_model(cls, availability: Any) -> "AvailabilitySummary":
        return cls(
            timezone=availability.timezone,
            subjects=list(availability.subjects or []),
            session_durations=list(availability.session_durations or []),
            is_active=bool(availability.is_active),
        )


class AvailabilityResponse(StrictModel):
    id: str
    tutor_id: str
    timezone: str
    weekly_schedule: Dict[int, List[TimeSlot]]
    date_overrides: List[DateOverrideResponse]
    subjects: List[str]
    session_durations: List[int]
    is_active: bool

    @classmethod
    def from_model(cls, availability: Any) -> "AvailabilityResponse":
        schedule = cast(Dict[str, List[Dict[str, str]]], availability.weekly_schedule or {})
        return cls(
            id=availability.id,
            tutor_id=availability.tutor_id,
            timezone=availability.timezone,
            weekly_schedule={
                int(day): [TimeSlot(**slot) for slot in slots] for day, slots in sorted(schedule.items())
            },
            date_overrides=[
                DateOverrideResponse(
                    date=override.override_date,
                    available=override.available,
                    slots=[TimeSlot(**slot) for slot in override.slots or []],
                )
                for override in availability.date_overrides
            ],
            subjects=list(availability.subjects or []),
            session_durations=list(availability.session_durations or []),
            is_active=bool(availability.is_active),
        )


class TutorWithAvailability(StrictModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True, from_attributes=True)

    id: str
    first_name: str
    last_name: str
    skills: List[str]
    bio: Optional[str] = None
    availability: Optional[AvailabilitySummary] = None
