# backend/app/services/availability_service.py
"""
Availability Service for the tutoring platform.

Owns each tutor's recurring weekly schedule, date overrides and bookable
metadata, and answers the one question bookings depend on: is this tutor
open for ``[start, start + duration)``?

Day and time-of-day are read from the UTC wall-clock fields of an instant
unless ``availability_use_tutor_timezone`` is enabled, in which case the
instant is first converted into the tutor's stored IANA zone.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, cast

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import DAYS_OF_WEEK, DEFAULT_SESSION_DURATIONS, DEFAULT_TIMEZONE
from ..core.enums import can_publish_availability
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..core.request_context import RequestContext
from ..models.availability import TutorAvailability
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import (
    AvailabilitySummary,
    AvailabilityUpdate,
    DateOverrideCreate,
    TutorWithAvailability,
)
from ..utils.time_window import (
    FULL_DAY,
    Window,
    day_of_week,
    find_slot_problem,
    normalize_to_day,
    request_window,
    slot_to_window,
    window_contains,
)
from .base import BaseService

if TYPE_CHECKING:
    from ..repositories.availability_repository import AvailabilityRepository
    from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """
    Service layer for tutor availability.

    Authorization (tutor or admin role) is checked by the routes; this
    service additionally ensures a tutor only manages their own record.
    """

    repository: "AvailabilityRepository"
    user_repository: "UserRepository"

    def __init__(
        self,
        db: Session,
        repository: Optional["AvailabilityRepository"] = None,
        user_repository: Optional["UserRepository"] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)
        self.user_repository = user_repository or RepositoryFactory.create_user_repository(db)
        self.settings = settings or default_settings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_target(self, ctx: RequestContext, tutor_id: Optional[str]) -> str:
        """Tutors manage their own availability; admins may name any tutor."""
        target = tutor_id or ctx.user_id
        if target != ctx.user_id and not ctx.is_admin:
            raise ForbiddenException("You can only manage your own availability")
        return target

    def _load_tutor(self, tutor_id: str) -> User:
        user = self.user_repository.get_by_id(tutor_id)
        if user is None:
            raise NotFoundException("Tutor not found", details={"tutor_id": tutor_id})
        return user

    def schedule_timezone(self, availability: TutorAvailability) -> Optional[str]:
        """Zone used to read wall-clock fields; None means UTC fields."""
        if self.settings.availability_use_tutor_timezone:
            return cast(str, availability.timezone) or DEFAULT_TIMEZONE
        return None

    @staticmethod
    def _validate_slots(slots: List[Dict[str, str]], label: str) -> None:
        problem = find_slot_problem(slots)
        if problem:
            raise ValidationException(
                f"Invalid time slot for {label}: {problem}",
                code="INVALID_TIME_SLOT",
                details={"day": label},
            )

    def get_or_create(self, tutor_id: str) -> TutorAvailability:
        """
        Return the tutor's availability, creating the inactive default on first read.

        Raises:
            NotFoundException: If the user does not exist
        """
        availability = self.repository.get_by_tutor_id(tutor_id)
        if availability is not None:
            return availability

        user = self._load_tutor(tutor_id)
        with self.transaction():
            availability = self.repository.create(
                tutor_id=tutor_id,
                timezone=DEFAULT_TIMEZONE,
                weekly_schedule={},
                subjects=user.skill_list,
                session_durations=list(DEFAULT_SESSION_DURATIONS),
                is_active=False,
            )
        self.logger.info("Availability created with defaults", extra={"tutor_id": tutor_id})
        return availability

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_availability")
    def get_availability(self, ctx: RequestContext, tutor_id: Optional[str] = None) -> TutorAvailability:
        target = self._resolve_target(ctx, tutor_id)
        return self.get_or_create(target)

    @BaseService.measure_operation("update_availability")
    def update_availability(
        self,
        ctx: RequestContext,
        patch: AvailabilityUpdate,
        tutor_id: Optional[str] = None,
    ) -> TutorAvailability:
        """
        Apply a partial update.

        Every day in ``patch.weekly_schedule`` is validated before anything is
        written, so one bad day rejects the whole update.

        Raises:
            ForbiddenException: Caller may not manage this tutor, or target is not a tutor
            ValidationException: A day has an inverted or overlapping slot
        """
        target = self._resolve_target(ctx, tutor_id)
        user = self._load_tutor(target)
        if not can_publish_availability(user.role_name):
            raise ForbiddenException("Only tutors can update availability settings")

        availability = self.get_or_create(target)
        changes: Dict[str, Any] = {}
        if patch.weekly_schedule is not None:
            schedule = dict(cast(Dict[str, Any], availability.weekly_schedule) or {})
            for day, slots in sorted(patch.weekly_schedule.items()):
                slot_dicts = [slot.model_dump() for slot in slots]
                self._validate_slots(slot_dicts, DAYS_OF_WEEK[day])
                schedule[str(day)] = sorted(slot_dicts, key=lambda s: s["start_time"])
            changes["weekly_schedule"] = schedule
        if patch.timezone is not None:
            changes["timezone"] = patch.timezone
        if patch.subjects is not None:
            changes["subjects"] = patch.subjects
        if patch.session_durations is not None:
            changes["session_durations"] = patch.session_durations
        if patch.is_active is not None:
            changes["is_active"] = patch.is_active

        with self.transaction():
            self.repository.apply_changes(availability, changes)

        self.logger.info(
            "Availability updated",
            extra=ctx.log_extra(tutor_id=target, fields=sorted(changes)),
        )
        return availability

    @BaseService.measure_operation("add_date_override")
    def add_date_override(
        self,
        ctx: RequestContext,
        data: DateOverrideCreate,
        tutor_id: Optional[str] = None,
    ) -> TutorAvailability:
        """Upsert the override for ``data.date``: an existing one is replaced."""
        target = self._resolve_target(ctx, tutor_id)
        override_date = normalize_to_day(data.date)
        slots = [slot.model_dump() for slot in data.slots]
        self._validate_slots(slots, override_date.isoformat())

        availability = self.get_or_create(target)
        with self.transaction():
            self.repository.upsert_override(
                availability,
                override_date,
                data.available,
                sorted(slots, key=lambda s: s["start_time"]),
            )

        self.logger.info(
            "Date override added",
            extra=ctx.log_extra(tutor_id=target, date=override_date.isoformat()),
        )
        return availability

    @BaseService.measure_operation("remove_date_override")
    def remove_date_override(
        self,
        ctx: RequestContext,
        override_date: date,
        tutor_id: Optional[str] = None,
    ) -> TutorAvailability:
        """
        Raises:
            NotFoundException: No override exists for that date
        """
        target = self._resolve_target(ctx, tutor_id)
        day = normalize_to_day(override_date)
        availability = self.get_or_create(target)
        with self.transaction():
            removed = self.repository.delete_override(availability, day)
            if not removed:
                raise NotFoundException("Date override not found", details={"date": day.isoformat()})

        self.logger.info(
            "Date override removed",
            extra=ctx.log_extra(tutor_id=target, date=day.isoformat()),
        )
        return availability

    @BaseService.measure_operation("get_tutors_with_availability")
    def get_tutors_with_availability(
        self,
        subject: Optional[str] = None,
        active_only: bool = False,
    ) -> List[TutorWithAvailability]:
        """Tutor directory, each entry annotated with an availability summary or None."""
        results: List[TutorWithAvailability] = []
        for tutor in self.user_repository.list_tutors(subject=subject):
            availability = tutor.availability
            results.append(
                TutorWithAvailability(
                    id=tutor.id,
                    first_name=tutor.first_name,
                    last_name=tutor.last_name,
                    skills=tutor.skill_list,
                    bio=tutor.bio,
                    availability=AvailabilitySummary.from_model(availability) if availability else None,
                )
            )

        if active_only:
            results = [r for r in results if r.availability is not None and r.availability.is_active]
        return results

    # ------------------------------------------------------------------
    # Scheduling primitives used by BookingService
    # ------------------------------------------------------------------

    def find_active(self, tutor_id: str) -> Optional[TutorAvailability]:
        """Availability when it exists and is active; never creates."""
        availability = self.repository.get_by_tutor_id(tutor_id)
        if availability is None or not availability.is_active:
            return None
        return availability

    @staticmethod
    def resolve_day_windows(availability: TutorAvailability, day: date) -> List[Window]:
        """
        Open windows for a calendar date.

        A date override replaces the weekly schedule: closed means no windows,
        open without slots means the whole day.
        """
        for override in availability.date_overrides:
            if override.override_date == day:
                if not override.available:
                    return []
                slots = cast(List[Dict[str, str]], override.slots) or []
                if not slots:
                    return [FULL_DAY]
                return sorted(slot_to_window(slot) for slot in slots)

        return sorted(slot_to_window(slot) for slot in availability.slots_for_day(day_of_week(day)))

    def is_open_at(self, tutor_id: str, start: datetime, duration_minutes: int) -> bool:
        """Whether ``[start, start + duration)`` lies fully inside one open window."""
        availability = self.find_active(tutor_id)
        if availability is None:
            return False
        day, requested = request_window(start, duration_minutes, self.schedule_timezone(availability))
        return any(window_contains(window, requested) for window in self.resolve_day_windows(availability, day))
