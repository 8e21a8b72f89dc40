# backend/app/services/booking_service.py
"""
Booking Service for the tutoring platform.

The scheduling core: creates bookings, drives the booking state machine and
computes open slots by combining a tutor's availability with the bookings
that still hold their time.

State machine:
    pending   -> accepted | declined | cancelled
    accepted  -> confirmed (calendar synced) | cancelled | completed
    confirmed -> cancelled | completed
    declined, cancelled, completed are terminal

Create, reschedule and accept run under a per-tutor scheduling lock and a
single transaction that also row-locks the tutor, so the availability and
conflict checks cannot race the insert. Calendar sync runs after commit and
its failures are logged, never raised.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import logging
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import tutor_schedule_lock
from ..core.config import Settings, settings as default_settings
from ..core.enums import can_publish_availability
from ..core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InvalidBookingTransitionException,
    NotFoundException,
    RepositoryException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.request_context import RequestContext
from ..integrations.google_calendar_client import CalendarBooking, CalendarNotifier
from ..models.booking import Booking, BookingStatus, source_statuses_for
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import (
    AvailableSlot,
    BookingAccept,
    BookingCreate,
    BookingFilters,
    BookingUpdate,
)
from ..utils.time_window import (
    ensure_utc,
    instant_at,
    minutes_to_hhmm,
    request_window,
    stepped_windows,
    windows_overlap,
)
from .availability_service import AvailabilityService
from .base import BaseService

if TYPE_CHECKING:
    from ..repositories.booking_repository import BookingRepository
    from ..repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing booking"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Every public operation takes the caller's RequestContext explicitly.
    """

    repository: "BookingRepository"
    user_repository: "UserRepository"

    def __init__(
        self,
        db: Session,
        availability_service: Optional[AvailabilityService] = None,
        calendar_notifier: Optional[CalendarNotifier] = None,
        repository: Optional["BookingRepository"] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            availability_service: Source of schedule truth (built from db if omitted)
            calendar_notifier: Optional calendar sink; None disables sync
            repository: Optional BookingRepository instance
            settings: Settings override, mainly for tests
            clock: Returns the current UTC instant
        """
        super().__init__(db)
        self.settings = settings or default_settings
        self.availability_service = availability_service or AvailabilityService(db, settings=self.settings)
        self.calendar_notifier = calendar_notifier
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self._clock = clock or _utc_now

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def _validate_duration(self, duration: int) -> None:
        low = self.settings.min_booking_duration_minutes
        high = self.settings.max_booking_duration_minutes
        if not low <= duration <= high:
            raise ValidationException(
                f"Duration must be between {low} and {high} minutes",
                code="INVALID_DURATION",
                details={"duration": duration, "min": low, "max": high},
            )

    def _ensure_future(self, scheduled_at: datetime) -> None:
        if ensure_utc(scheduled_at) <= self._now():
            raise ValidationException(
                "Booking must be scheduled in the future",
                code="SCHEDULED_IN_PAST",
                details={"scheduled_at": ensure_utc(scheduled_at).isoformat()},
            )

    def _get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_with_parties(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    @staticmethod
    def _require_status(booking: Booking, action: str, allowed: Iterable[BookingStatus]) -> None:
        allowed_set = set(allowed)
        if booking.status_enum not in allowed_set:
            raise InvalidBookingTransitionException(
                action=action,
                current_status=booking.status_enum.value,
                allowed=[status.value for status in allowed_set],
            )

    def _check_slot(
        self,
        tutor_id: str,
        start: datetime,
        duration: int,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        """Availability then conflict check. Must run under the tutor lock."""
        if not self.availability_service.is_open_at(tutor_id, start, duration):
            raise SlotUnavailableException(
                details={"tutor_id": tutor_id, "scheduled_at": start.isoformat(), "duration": duration}
            )
        end = start + timedelta(minutes=duration)
        conflicts = self.repository.find_conflicts(tutor_id, start, end, exclude_booking_id)
        if conflicts:
            raise BookingConflictException(
                GENERIC_CONFLICT_MESSAGE,
                details={
                    "tutor_id": tutor_id,
                    "scheduled_at": start.isoformat(),
                    "end_time": end.isoformat(),
                    "conflicting_booking_ids": [c.id for c in conflicts],
                },
            )

    @staticmethod
    def _raise_conflict_from_repo_error(exc: RepositoryException, tutor_id: str) -> None:
        """Unique-index violations are lost races on the same start instant."""
        if isinstance(exc.__cause__, IntegrityError):
            raise BookingConflictException(
                GENERIC_CONFLICT_MESSAGE,
                details={"tutor_id": tutor_id, "reason": "concurrent_booking"},
            ) from exc
        raise exc

    # ------------------------------------------------------------------
    # Creation and rescheduling
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(self, ctx: RequestContext, data: BookingCreate) -> Booking:
        """
        Create a pending booking for the calling student.

        Raises:
            NotFoundException: Tutor does not exist
            ValidationException: Not a tutor, self-booking, bad duration, past start
            SlotUnavailableException: Tutor is not open for the window
            BookingConflictException: Window overlaps another active booking
        """
        tutor = self.user_repository.get_by_id(data.tutor_id)
        if tutor is None:
            raise NotFoundException("Tutor not found", details={"tutor_id": data.tutor_id})
        if not can_publish_availability(tutor.role_name):
            raise ValidationException(
                "Selected user is not a tutor", code="NOT_A_TUTOR", details={"tutor_id": tutor.id}
            )
        if ctx.user_id == tutor.id:
            raise ValidationException("You cannot book a session with yourself", code="SELF_BOOKING")
        self._validate_duration(data.duration)
        start = ensure_utc(data.scheduled_at)
        self._ensure_future(start)

        # tutor is expired once a flush fails; only the plain id is safe to read after that
        tutor_id = str(tutor.id)
        with tutor_schedule_lock(tutor_id):
            with self.transaction():
                self.user_repository.get_by_id(tutor_id, for_update=True)
                self._check_slot(tutor_id, start, data.duration)
                try:
                    booking = self.repository.create(
                        student_id=ctx.user_id,
                        tutor_id=tutor_id,
                        subject=data.subject,
                        description=data.description,
                        notes=data.notes,
                        scheduled_at=start,
                        duration=data.duration,
                        status=BookingStatus.PENDING.value,
                    )
                except RepositoryException as exc:
                    self._raise_conflict_from_repo_error(exc, tutor_id)

        prometheus_metrics.record_booking_transition(BookingStatus.PENDING.value)
        self.logger.info(
            "Booking created",
            extra=ctx.log_extra(
                booking_id=booking.id,
                tutor_id=tutor_id,
                scheduled_at=start.isoformat(),
                duration=data.duration,
            ),
        )
        return booking

    @BaseService.measure_operation("update_booking")
    def update_booking(self, ctx: RequestContext, booking_id: str, patch: BookingUpdate) -> Booking:
        """
        Edit a pending booking. Only the student who created it may do so.

        Rescheduling re-runs the future, availability and conflict checks,
        ignoring the booking's own current window.
        """
        booking = self._get_booking_or_404(booking_id)
        if booking.student_id != ctx.user_id:
            raise ForbiddenException("Only the student who created the booking can update it")
        self._require_status(booking, "update", [BookingStatus.PENDING])

        start = ensure_utc(patch.scheduled_at or booking.scheduled_at)
        duration = patch.duration if patch.duration is not None else int(booking.duration)
        if patch.changes_schedule:
            self._validate_duration(duration)
            self._ensure_future(start)

        tutor_id = str(booking.tutor_id)
        with tutor_schedule_lock(tutor_id):
            with self.transaction():
                if patch.changes_schedule:
                    self.user_repository.get_by_id(tutor_id, for_update=True)
                    self.repository.refresh(booking)
                    self._require_status(booking, "update", [BookingStatus.PENDING])
                    self._check_slot(tutor_id, start, duration, exclude_booking_id=booking.id)
                    booking.reschedule(start, duration)
                if patch.subject is not None:
                    booking.subject = patch.subject
                if "description" in patch.model_fields_set:
                    booking.description = patch.description
                if "notes" in patch.model_fields_set:
                    booking.notes = patch.notes
                try:
                    self.repository.flush()
                except RepositoryException as exc:
                    self._raise_conflict_from_repo_error(exc, tutor_id)

        self.logger.info(
            "Booking updated",
            extra=ctx.log_extra(booking_id=booking.id, rescheduled=patch.changes_schedule),
        )
        return booking

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("accept_booking")
    def accept_booking(
        self,
        ctx: RequestContext,
        booking_id: str,
        data: Optional[BookingAccept] = None,
    ) -> Booking:
        """
        Tutor accepts a pending booking, then calendar sync is attempted.

        A successful sync moves the booking to confirmed (and may replace the
        meeting link with the generated one); a failed sync leaves it accepted.
        """
        data = data or BookingAccept()
        booking = self._get_booking_or_404(booking_id)
        if booking.tutor_id != ctx.user_id:
            raise ForbiddenException("Only the assigned tutor can accept this booking")

        with tutor_schedule_lock(str(booking.tutor_id)):
            with self.transaction():
                self.repository.refresh(booking)
                self._require_status(booking, "accept", source_statuses_for(BookingStatus.ACCEPTED))
                booking.status = BookingStatus.ACCEPTED.value
                if data.meeting_link:
                    booking.meeting_link = data.meeting_link
                if data.notes:
                    booking.notes = data.notes

        prometheus_metrics.record_booking_transition(BookingStatus.ACCEPTED.value)
        self.logger.info("Booking accepted", extra=ctx.log_extra(booking_id=booking.id))

        self._sync_calendar_on_accept(ctx, booking)
        return booking

    def _sync_calendar_on_accept(self, ctx: RequestContext, booking: Booking) -> None:
        if self.calendar_notifier is None:
            prometheus_metrics.record_calendar_sync("create", "skipped")
            return

        try:
            event = self.calendar_notifier.create_event(CalendarBooking.from_booking(booking))
        except Exception as exc:
            prometheus_metrics.record_calendar_sync("create", "error")
            self.logger.warning(
                "Calendar sync failed, booking stays accepted",
                extra=ctx.log_extra(
                    booking_id=booking.id, error=str(exc), error_type=type(exc).__name__
                ),
            )
            return

        if event is None:
            prometheus_metrics.record_calendar_sync("create", "skipped")
            return

        prometheus_metrics.record_calendar_sync("create", "success")
        booking_id = str(booking.id)
        try:
            with self.transaction():
                self.repository.refresh(booking)
                if booking.status_enum is not BookingStatus.ACCEPTED:
                    self.logger.warning(
                        "Booking changed before calendar confirmation",
                        extra=ctx.log_extra(booking_id=booking.id, status=booking.status),
                    )
                    confirmed = False
                else:
                    confirmed = True
                    booking.status = BookingStatus.CONFIRMED.value
                    booking.google_calendar_event_id = event.id
                    if event.meet_link:
                        booking.meeting_link = event.meet_link
        except ServiceException as exc:
            self.logger.error(
                "Could not record calendar confirmation",
                extra=ctx.log_extra(booking_id=booking_id, event_id=event.id, error=str(exc)),
            )
            confirmed = False

        if not confirmed:
            # No booking references the event, so nothing else would ever remove it
            self._delete_calendar_event(ctx, booking_id, event.id)
            return

        prometheus_metrics.record_booking_transition(BookingStatus.CONFIRMED.value)
        self.logger.info(
            "Booking confirmed via calendar sync",
            extra=ctx.log_extra(booking_id=booking_id, event_id=event.id),
        )

    @BaseService.measure_operation("decline_booking")
    def decline_booking(self, ctx: RequestContext, booking_id: str, reason: str) -> Booking:
        booking = self._get_booking_or_404(booking_id)
        if booking.tutor_id != ctx.user_id:
            raise ForbiddenException("Only the assigned tutor can decline this booking")

        with self.transaction():
            self._require_status(booking, "decline", source_statuses_for(BookingStatus.DECLINED))
            booking.decline(ctx.user_id, reason)

        prometheus_metrics.record_booking_transition(BookingStatus.DECLINED.value)
        self.logger.info("Booking declined", extra=ctx.log_extra(booking_id=booking.id))
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, ctx: RequestContext, booking_id: str, reason: str) -> Booking:
        """
        Either party cancels an active booking.

        The cancellation commits first; removing the calendar event afterwards
        is best-effort.
        """
        booking = self._get_booking_or_404(booking_id)
        if not booking.is_party(ctx.user_id):
            raise ForbiddenException("You don't have permission to cancel this booking")

        with self.transaction():
            self._require_status(booking, "cancel", source_statuses_for(BookingStatus.CANCELLED))
            event_id = booking.google_calendar_event_id
            booking.cancel(ctx.user_id, reason)

        prometheus_metrics.record_booking_transition(BookingStatus.CANCELLED.value)
        self.logger.info(
            "Booking cancelled",
            extra=ctx.log_extra(booking_id=booking.id, cancelled_by=ctx.user_id),
        )

        if event_id:
            self._delete_calendar_event(ctx, booking.id, str(event_id))
        return booking

    def _delete_calendar_event(self, ctx: RequestContext, booking_id: str, event_id: str) -> None:
        if self.calendar_notifier is None:
            prometheus_metrics.record_calendar_sync("delete", "skipped")
            return
        try:
            self.calendar_notifier.delete_event(event_id)
        except Exception as exc:
            prometheus_metrics.record_calendar_sync("delete", "error")
            self.logger.warning(
                "Calendar event deletion failed",
                extra=ctx.log_extra(
                    booking_id=booking_id,
                    event_id=event_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                ),
            )
            return
        prometheus_metrics.record_calendar_sync("delete", "success")

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, ctx: RequestContext, booking_id: str) -> Booking:
        """
        Mark an accepted or confirmed session as completed.

        A session that has not started yet can never be completed.
        """
        booking = self._get_booking_or_404(booking_id)
        self._require_status(booking, "complete", source_statuses_for(BookingStatus.COMPLETED))
        if ensure_utc(booking.scheduled_at) > self._now():
            raise ValidationException(
                "Cannot complete a session before its scheduled time",
                code="SESSION_NOT_STARTED",
                details={"scheduled_at": ensure_utc(booking.scheduled_at).isoformat()},
            )
        if not booking.is_party(ctx.user_id):
            raise ForbiddenException("You don't have permission to complete this booking")

        with self.transaction():
            booking.complete()

        prometheus_metrics.record_booking_transition(BookingStatus.COMPLETED.value)
        self.logger.info("Booking completed", extra=ctx.log_extra(booking_id=booking.id))
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(self, tutor_id: str, day: date, duration: int) -> List[AvailableSlot]:
        """
        Open ``duration``-long slots for a tutor on ``day``, in chronological order.

        Each open window is walked in ``slot_step_minutes`` strides; slots that
        start in the past or overlap an active booking are dropped.
        """
        self._validate_duration(duration)
        if self.user_repository.get_by_id(tutor_id) is None:
            raise NotFoundException("Tutor not found", details={"tutor_id": tutor_id})

        availability = self.availability_service.find_active(tutor_id)
        if availability is None:
            return []

        tz_name = self.availability_service.schedule_timezone(availability)
        windows = self.availability_service.resolve_day_windows(availability, day)
        if not windows:
            return []

        day_start = instant_at(day, 0, tz_name)
        day_end = instant_at(day + timedelta(days=1), 0, tz_name)
        busy = [
            (ensure_utc(b.scheduled_at), ensure_utc(b.ends_at))
            for b in self.repository.get_active_for_tutor_between(tutor_id, day_start, day_end)
        ]
        now = self._now()

        slots: List[AvailableSlot] = []
        for start_min, end_min in stepped_windows(windows, duration, self.settings.slot_step_minutes):
            starts_at = instant_at(day, start_min, tz_name)
            # Wall-clock times skipped by a DST jump do not map back to themselves
            if request_window(starts_at, duration, tz_name) != (day, (start_min, end_min)):
                continue
            ends_at = starts_at + timedelta(minutes=duration)
            if starts_at <= now:
                continue
            if any(windows_overlap(starts_at, ends_at, b_start, b_end) for b_start, b_end in busy):
                continue
            slots.append(
                AvailableSlot(
                    start_time=minutes_to_hhmm(start_min),
                    end_time=minutes_to_hhmm(end_min),
                    duration=duration,
                    starts_at=starts_at,
                    ends_at=ends_at,
                )
            )
        return slots

    @BaseService.measure_operation("get_bookings")
    def get_bookings(self, ctx: RequestContext, filters: Optional[BookingFilters] = None) -> List[Booking]:
        """The caller's bookings as student, tutor or both, ordered by start."""
        filters = filters or BookingFilters()
        return self.repository.list_for_user(
            ctx.user_id,
            as_student=filters.role in (None, "student"),
            as_tutor=filters.role in (None, "tutor"),
            status=filters.status.value if filters.status else None,
            starts_after=self._now() if filters.upcoming else None,
        )

    @BaseService.measure_operation("get_booking")
    def get_booking(self, ctx: RequestContext, booking_id: str) -> Booking:
        booking = self._get_booking_or_404(booking_id)
        if not booking.is_party(ctx.user_id) and not ctx.is_admin:
            raise ForbiddenException("You don't have permission to view this booking")
        return booking
