# backend/app/schemas/booking.py
"""
Booking schemas for the tutoring platform.

Bookings carry an absolute start instant (``scheduled_at``, UTC) and a
duration in minutes. Naive datetimes from clients are read as UTC.
Duration bounds and "must be in the future" are business rules checked by
BookingService, which reports them as 400s with stable codes.
"""

from datetime import date, datetime, timezone
import re
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from ..core.constants import (
    DEFAULT_BOOKING_DURATION_MINUTES,
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_REASON_LENGTH,
    MAX_SUBJECT_LENGTH,
)
from ..models.booking import BookingStatus
from ._strict_base import StrictModel, StrictRequestModel

HTTP_URL_REGEX = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    stripped = value.strip()
    return stripped or None


class BookingCreate(StrictRequestModel):
    """A student's request for a session with a tutor."""

    tutor_id: str = Field(..., min_length=1, description="Tutor to book")
    subject: str = Field(..., min_length=1, max_length=MAX_SUBJECT_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    scheduled_at: datetime = Field(..., description="Session start (UTC if no offset given)")
    duration: int = Field(DEFAULT_BOOKING_DURATION_MINUTES, description="Minutes")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("subject")
    @classmethod
    def _clean_subject(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Subject cannot be empty")
        return v

    @field_validator("description", "notes")
    @classmethod
    def _clean_optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)

    @field_validator("scheduled_at")
    @classmethod
    def _normalize_instant(cls, v: datetime) -> datetime:
        return _as_utc(v)


class BookingUpdate(StrictRequestModel):
    """Changes a student may make while the booking is still pending."""

    subject: Optional[str] = Field(None, min_length=1, max_length=MAX_SUBJECT_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("subject")
    @classmethod
    def _clean_subject(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Subject cannot be empty")
        return v

    @field_validator("description", "notes")
    @classmethod
    def _clean_optional_text(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)

    @field_validator("scheduled_at")
    @classmethod
    def _normalize_instant(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @property
    def changes_schedule(self) -> bool:
        return self.scheduled_at is not None or self.duration is not None


class BookingAccept(StrictRequestModel):
    meeting_link: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("meeting_link")
    @classmethod
    def _check_link(cls, v: Optional[str]) -> Optional[str]:
        v = _clean_text(v)
        if v is not None and not HTTP_URL_REGEX.match(v):
            raise ValueError("Meeting link must be a valid http(s) URL")
        return v

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_text(v)


class BookingReason(StrictRequestModel):
    """Reason given when declining or cancelling."""

    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reason cannot be empty")
        return v


class BookingFilters(StrictRequestModel):
    status: Optional[BookingStatus] = None
    role: Optional[Literal["student", "tutor"]] = None
    upcoming: bool = False


class UserSummary(StrictModel):
    id: str
    first_name: str
    last_name: str
    email: str

    @classmethod
    def from_model(cls, user: Any) -> Optional["UserSummary"]:
        if user is None:
            return None
        return cls(id=user.id, first_name=user.first_name, last_name=user.last_name, email=user.email)


class BookingResponse(StrictModel):
    id: str
    student_id: str
    tutor_id: str
    student: Optional[UserSummary] = None
    tutor: Optional[UserSummary] = None
    subject: str
    description: Optional[str] = None
    notes: Optional[str] = None
    scheduled_at: datetime
    end_time: datetime
    duration: int
    status: BookingStatus
    meeting_link: Optional[str] = None
    google_calendar_event_id: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_by_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, booking: Any) -> "BookingResponse":
        return cls(
            id=booking.id,
            student_id=booking.student_id,
            tutor_id=booking.tutor_id,
            student=UserSummary.from_model(booking.student),
            tutor=UserSummary.from_model(booking.tutor),
            subject=booking.subject,
            description=booking.description,
            notes=booking.notes,
            scheduled_at=_as_utc(booking.scheduled_at),
            end_time=_as_utc(booking.ends_at),
            duration=booking.duration,
            status=BookingStatus(booking.status),
            meeting_link=booking.meeting_link,
            google_calendar_event_id=booking.google_calendar_event_id,
            cancel_reason=booking.cancel_reason,
            cancelled_by_id=booking.cancelled_by_id,
            completed_at=_as_utc(booking.completed_at),
            created_at=_as_utc(booking.created_at),
        )


class AvailableSlot(StrictModel):
    """One bookable sub-window of a tutor's day."""

    start_time: str
    end_time: str
    duration: int
    starts_at: datetime
    ends_at: datetime


class AvailableSlotsResponse(StrictModel):
    tutor_id: str
    date: date
    duration: int
    slots: List[AvailableSlot]
