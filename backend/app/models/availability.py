# backend/app/models/availability.py
"""
Availability models for the tutoring platform.

Each tutor has at most one TutorAvailability row holding the recurring weekly
schedule plus metadata. Date-specific overrides live in a child table keyed by
(availability_id, override_date) so a calendar date can only be overridden once.

Classes:
    TutorAvailability: Weekly schedule, subjects, durations and active flag
    AvailabilityDateOverride: Replacement of the weekly schedule for one date
"""

import logging
from typing import Any, Dict, List, cast

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.constants import DEFAULT_TIMEZONE
from ..database import Base

logger = logging.getLogger(__name__)


class TutorAvailability(Base):
    """
    Recurring availability of one tutor.

    weekly_schedule maps day-of-week keys ("0" = Sunday .. "6" = Saturday) to
    lists of {"start_time": "HH:mm", "end_time": "HH:mm"}.
    """

    __tablename__ = "tutor_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    timezone = Column(String(50), nullable=False, default=DEFAULT_TIMEZONE)
    weekly_schedule = Column(JSON, nullable=False, default=dict)
    subjects = Column(JSON, nullable=False, default=list)
    session_durations = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tutor = relationship("User", back_populates="availability")
    date_overrides = relationship(
        "AvailabilityDateOverride",
        back_populates="availability",
        cascade="all, delete-orphan",
        order_by="AvailabilityDateOverride.override_date",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<TutorAvailability tutor={self.tutor_id} active={self.is_active}>"

    def slots_for_day(self, dow: int) -> List[Dict[str, str]]:
        schedule = cast(Dict[str, Any], self.weekly_schedule) or {}
        return list(schedule.get(str(dow)) or [])


class AvailabilityDateOverride(Base):
    """Replaces the weekly schedule for a single calendar date."""

    __tablename__ = "availability_date_overrides"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    availability_id = Column(
        String(26),
        ForeignKey("tutor_availability.id", ondelete="CASCADE"),
        nullable=False,
    )
    override_date = Column(Date, nullable=False)
    available = Column(Boolean, nullable=False, default=False)
    slots = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    availability = relationship("TutorAvailability", back_populates="date_overrides")

    __table_args__ = (
        UniqueConstraint("availability_id", "override_date", name="unique_availability_override_date"),
        Index("idx_availability_overrides_date", "availability_id", "override_date"),
    )

    def __repr__(self) -> str:
        state = "open" if self.available else "closed"
        return f"<AvailabilityDateOverride {self.override_date} {state}>"
