# backend/app/models/booking.py
"""
Booking model for the tutoring platform.

A booking is a requested or scheduled session between a student and a tutor.
Bookings are never deleted: decline, cancel and complete are terminal states.

Times are absolute instants stored in UTC. ``ends_at`` is denormalized from
``scheduled_at + duration`` so overlap checks run as a single indexed query.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, cast

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Requested by the student
    ACCEPTED = "accepted"  # Tutor accepted, calendar not synced (yet)
    DECLINED = "declined"  # Tutor declined
    CONFIRMED = "confirmed"  # Accepted and synced to the calendar
    COMPLETED = "completed"  # Session took place
    CANCELLED = "cancelled"  # Cancelled by either party


# States that still hold the tutor's time
ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.CONFIRMED}
)

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.ACCEPTED, BookingStatus.DECLINED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACCEPTED: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    ),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def source_statuses_for(target: BookingStatus) -> FrozenSet[BookingStatus]:
    """States from which ``target`` can be reached."""
    return frozenset(src for src, targets in ALLOWED_TRANSITIONS.items() if target in targets)


class Booking(Base):
    """Session between a student and a tutor."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    subject = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    meeting_link = Column(String(500), nullable=True)
    google_calendar_event_id = Column(String(255), nullable=True)

    cancel_reason = Column(Text, nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student = relationship("User", foreign_keys=[student_id], backref="student_bookings")
    tutor = relationship("User", foreign_keys=[tutor_id], backref="tutor_bookings")
    cancelled_by = relationship("User", foreign_keys=[cancelled_by_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration > 0", name="check_duration_positive"),
        CheckConstraint("student_id <> tutor_id", name="ck_bookings_distinct_parties"),
        Index("ix_bookings_tutor_window", "tutor_id", "scheduled_at", "ends_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if self.scheduled_at is not None and self.duration and self.ends_at is None:
            self.ends_at = self.scheduled_at + timedelta(minutes=int(self.duration))

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.student_id}, tutor={self.tutor_id}, "
            f"at={self.scheduled_at}, duration={self.duration}, status={self.status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(cast(str, self.status))

    @property
    def is_active(self) -> bool:
        return self.status_enum in ACTIVE_STATUSES

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.student_id, self.tutor_id)

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status_enum]

    def reschedule(self, scheduled_at: datetime, duration: int) -> None:
        self.scheduled_at = scheduled_at
        self.duration = duration
        self.ends_at = scheduled_at + timedelta(minutes=duration)

    def cancel(self, cancelled_by_user_id: str, reason: str) -> None:
        """Mark cancelled and record who cancelled."""
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancelled_by_id = cancelled_by_user_id
        self.cancel_reason = reason

    def decline(self, declined_by_user_id: str, reason: str) -> None:
        self.status = BookingStatus.DECLINED.value
        self.cancelled_by_id = declined_by_user_id
        self.cancel_reason = reason

    def complete(self) -> None:
        """Mark booking as completed."""
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)


# Two active bookings of one tutor never share a start instant
Index(
    "uq_bookings_tutor_start_active",
    Booking.tutor_id,
    Booking.scheduled_at,
    unique=True,
    postgresql_where=Booking.status.in_(["pending", "accepted", "confirmed"]),
    sqlite_where=Booking.status.in_(["pending", "accepted", "confirmed"]),
)
