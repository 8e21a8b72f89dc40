"""
Unit tests for BookingService.

Covers creation rules, the state machine, calendar sync side effects and
open-slot computation against a real (SQLite) database.
"""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

from conftest import FIXED_NOW, NEXT_MONDAY, NEXT_TUESDAY, at, ctx_for, fixed_clock
import pytest

from app.core.enums import RoleName
from app.core.exceptions import (
    BookingConflictException,
    ForbiddenException,
    InvalidBookingTransitionException,
    NotFoundException,
    RepositoryException,
    SlotUnavailableException,
    ValidationException,
)
from app.integrations.google_calendar_client import CalendarEvent
from app.models.booking import BookingStatus
from app.schemas.availability import DateOverrideCreate
from app.schemas.booking import BookingAccept, BookingCreate, BookingFilters, BookingUpdate
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService


def _request(tutor, start, duration=60, **extra):
    return BookingCreate(tutor_id=tutor.id, subject="Math", scheduled_at=start, duration=duration, **extra)


@pytest.fixture
def open_tutor(tutor, make_availability):
    """Tutor open Mondays 09:00-17:00 UTC."""
    make_availability(tutor)
    return tutor


class TestCreateBooking:
    def test_creates_pending_booking(self, booking_service, open_tutor, student):
        booking = booking_service.create_booking(
            ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "10:00"), description="Derivatives")
        )

        assert booking.id
        assert booking.status == BookingStatus.PENDING.value
        assert booking.student_id == student.id
        assert booking.tutor_id == open_tutor.id
        assert booking.duration == 60
        assert booking.description == "Derivatives"
        assert booking.ends_at.replace(tzinfo=timezone.utc) == at(NEXT_MONDAY, "11:00")

    def test_naive_start_is_read_as_utc(self, booking_service, open_tutor, student):
        booking = booking_service.create_booking(
            ctx_for(student), _request(open_tutor, datetime(2025, 1, 13, 10, 0))
        )
        assert booking.scheduled_at.replace(tzinfo=timezone.utc) == at(NEXT_MONDAY, "10:00")

    def test_rejects_past_start(self, booking_service, open_tutor, student):
        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(ctx_for(student), _request(open_tutor, FIXED_NOW))
        assert exc.value.code == "SCHEDULED_IN_PAST"

    @pytest.mark.parametrize("duration", [5, 14, 181, 600])
    def test_rejects_out_of_range_duration(self, booking_service, open_tutor, student, duration):
        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(
                ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "10:00"), duration=duration)
            )
        assert exc.value.code == "INVALID_DURATION"

    def test_rejects_self_booking(self, booking_service, open_tutor):
        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(ctx_for(open_tutor), _request(open_tutor, at(NEXT_MONDAY, "10:00")))
        assert exc.value.code == "SELF_BOOKING"

    def test_rejects_booking_a_student(self, booking_service, student, other_student):
        with pytest.raises(ValidationException) as exc:
            booking_service.create_booking(
                ctx_for(student), _request(other_student, at(NEXT_MONDAY, "10:00"))
            )
        assert exc.value.code == "NOT_A_TUTOR"

    def test_missing_tutor_is_not_found(self, booking_service, student):
        data = BookingCreate(
            tutor_id="01JDOESNOTEXIST0000000000",
            subject="Math",
            scheduled_at=at(NEXT_MONDAY, "10:00"),
        )
        with pytest.raises(NotFoundException):
            booking_service.create_booking(ctx_for(student), data)

    def test_outside_availability_is_unavailable(self, booking_service, open_tutor, student):
        with pytest.raises(SlotUnavailableException) as exc:
            booking_service.create_booking(ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "16:30")))
        assert exc.value.code == "SLOT_UNAVAILABLE"

    def test_inactive_availability_is_unavailable(self, booking_service, tutor, make_availability, student):
        make_availability(tutor, is_active=False)
        with pytest.raises(SlotUnavailableException):
            booking_service.create_booking(ctx_for(student), _request(tutor, at(NEXT_MONDAY, "10:00")))

    def test_overlap_is_conflict(self, booking_service, open_tutor, student, other_student, make_booking):
        existing = make_booking(other_student, open_tutor, at(NEXT_MONDAY, "10:00"))

        with pytest.raises(BookingConflictException) as exc:
            booking_service.create_booking(ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "10:30")))

        assert exc.value.code == "BOOKING_CONFLICT"
        assert exc.value.details["conflicting_booking_ids"] == [existing.id]

    def test_adjacent_bookings_do_not_conflict(self, booking_service, open_tutor, student, other_student, make_booking):
        make_booking(other_student, open_tutor, at(NEXT_MONDAY, "10:00"))
        booking = booking_service.create_booking(ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "11:00")))
        assert booking.status == BookingStatus.PENDING.value

    @pytest.mark.parametrize("status", [BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    def test_inactive_bookings_free_the_slot(
        self, booking_service, open_tutor, student, other_student, make_booking, status
    ):
        make_booking(other_student, open_tutor, at(NEXT_MONDAY, "10:00"), status=status)
        booking = booking_service.create_booking(ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "10:00")))
        assert booking.status == BookingStatus.PENDING.value

    def test_lost_race_on_unique_index_is_conflict(
        self, booking_service, open_tutor, student, other_student, make_booking, monkeypatch
    ):
        make_booking(other_student, open_tutor, at(NEXT_MONDAY, "10:00"))
        # Simulate a concurrent insert that slipped past the overlap query
        monkeypatch.setattr(booking_service.repository, "find_conflicts", lambda *args, **kwargs: [])

        with pytest.raises(BookingConflictException) as exc:
            booking_service.create_booking(ctx_for(student), _request(open_tutor, at(NEXT_MONDAY, "10:00")))
        assert exc.value.details["reason"] == "concurrent_booking"
        assert exc.value.details["tutor_id"] == open_tutor.id
        assert len(booking_service.get_bookings(ctx_for(open_tutor))) == 1


class TestUpdateBooking:
    def test_reschedule_ignores_own_window(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        updated = booking_service.update_booking(
            ctx_for(student), booking.id, BookingUpdate(scheduled_at=at(NEXT_MONDAY, "10:30"))
        )

        assert updated.scheduled_at.replace(tzinfo=timezone.utc) == at(NEXT_MONDAY, "10:30")
        assert updated.ends_at.replace(tzinfo=timezone.utc) == at(NEXT_MONDAY, "11:30")

    def test_reschedule_into_other_booking_conflicts(
        self, booking_service, open_tutor, student, other_student, make_booking
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        make_booking(other_student, open_tutor, at(NEXT_MONDAY, "13:00"))

        with pytest.raises(BookingConflictException):
            booking_service.update_booking(
                ctx_for(student), booking.id, BookingUpdate(scheduled_at=at(NEXT_MONDAY, "12:30"))
            )

    def test_longer_duration_must_fit_availability(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "16:00"))
        with pytest.raises(SlotUnavailableException):
            booking_service.update_booking(ctx_for(student), booking.id, BookingUpdate(duration=90))

    def test_text_fields_update_without_rechecking_schedule(
        self, booking_service, open_tutor, student, make_booking
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), description="old")

        updated = booking_service.update_booking(
            ctx_for(student), booking.id, BookingUpdate(subject="Physics", description=None)
        )

        assert updated.subject == "Physics"
        assert updated.description is None

    def test_only_the_student_may_update(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        with pytest.raises(ForbiddenException):
            booking_service.update_booking(ctx_for(open_tutor), booking.id, BookingUpdate(subject="Physics"))

    def test_only_pending_bookings_can_change(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.ACCEPTED)
        with pytest.raises(InvalidBookingTransitionException) as exc:
            booking_service.update_booking(ctx_for(student), booking.id, BookingUpdate(subject="Physics"))
        assert exc.value.details["current_status"] == "accepted"


class TestAcceptBooking:
    def test_calendar_sync_confirms(self, booking_service, calendar, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        accepted = booking_service.accept_booking(ctx_for(open_tutor), booking.id)

        assert accepted.status == BookingStatus.CONFIRMED.value
        assert accepted.google_calendar_event_id in calendar.events
        assert accepted.meeting_link.startswith("https://meet.google.com/")
        synced = calendar.events[accepted.google_calendar_event_id]
        assert synced.student_email == student.email
        assert synced.tutor_email == open_tutor.email

    def test_tutor_link_kept_when_event_has_none(self, db, availability_service, open_tutor, student, make_booking):
        from app.integrations import FakeCalendarNotifier

        service = BookingService(
            db,
            availability_service=availability_service,
            calendar_notifier=FakeCalendarNotifier(meet_links=False),
            clock=fixed_clock,
        )
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        accepted = service.accept_booking(
            ctx_for(open_tutor),
            booking.id,
            BookingAccept(meeting_link="https://zoom.example.com/j/1", notes="Bring notes"),
        )

        assert accepted.status == BookingStatus.CONFIRMED.value
        assert accepted.meeting_link == "https://zoom.example.com/j/1"
        assert accepted.notes == "Bring notes"

    def test_calendar_failure_leaves_accepted(self, booking_service, calendar, open_tutor, student, make_booking):
        calendar.set_error("create_event", RuntimeError("calendar down"))
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        accepted = booking_service.accept_booking(ctx_for(open_tutor), booking.id)

        assert accepted.status == BookingStatus.ACCEPTED.value
        assert accepted.google_calendar_event_id is None

    def test_without_notifier_stays_accepted(self, db, availability_service, open_tutor, student, make_booking):
        service = BookingService(db, availability_service=availability_service, clock=fixed_clock)
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        assert service.accept_booking(ctx_for(open_tutor), booking.id).status == BookingStatus.ACCEPTED.value

    def test_unconfigured_calendar_stays_accepted(self, db, availability_service, open_tutor, student, make_booking):
        notifier = MagicMock()
        notifier.create_event.return_value = None
        service = BookingService(
            db, availability_service=availability_service, calendar_notifier=notifier, clock=fixed_clock
        )
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        accepted = service.accept_booking(ctx_for(open_tutor), booking.id)

        assert accepted.status == BookingStatus.ACCEPTED.value
        notifier.create_event.assert_called_once()

    def test_event_removed_when_booking_cancelled_during_sync(
        self, db, availability_service, open_tutor, student, make_booking
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        notifier = MagicMock()

        def _student_cancels_meanwhile(calendar_booking):
            service.cancel_booking(ctx_for(student), calendar_booking.booking_id, "Found another slot")
            return CalendarEvent(id="evt_race", meet_link="https://meet.google.com/race")

        notifier.create_event.side_effect = _student_cancels_meanwhile
        service = BookingService(
            db, availability_service=availability_service, calendar_notifier=notifier, clock=fixed_clock
        )

        result = service.accept_booking(ctx_for(open_tutor), booking.id)

        assert result.status == BookingStatus.CANCELLED.value
        assert result.google_calendar_event_id is None
        notifier.delete_event.assert_called_once_with("evt_race")

    def test_event_removed_when_confirmation_cannot_be_saved(
        self, booking_service, calendar, open_tutor, student, make_booking, monkeypatch
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        real_refresh = booking_service.repository.refresh
        calls = []

        def _refresh(instance):
            calls.append(instance)
            if len(calls) > 1:
                raise RepositoryException("connection lost")
            return real_refresh(instance)

        monkeypatch.setattr(booking_service.repository, "refresh", _refresh)

        result = booking_service.accept_booking(ctx_for(open_tutor), booking.id)

        assert result.status == BookingStatus.ACCEPTED.value
        assert result.google_calendar_event_id is None
        assert calendar.events == {}
        assert [c["method"] for c in calendar.calls] == ["create_event", "delete_event"]

    def test_only_assigned_tutor_may_accept(self, booking_service, open_tutor, make_user, student, make_booking):
        stranger = make_user(RoleName.TUTOR)
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        with pytest.raises(ForbiddenException):
            booking_service.accept_booking(ctx_for(stranger), booking.id)

    def test_cannot_accept_twice(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.CONFIRMED)
        with pytest.raises(InvalidBookingTransitionException):
            booking_service.accept_booking(ctx_for(open_tutor), booking.id)

    def test_missing_booking_is_not_found(self, booking_service, open_tutor):
        with pytest.raises(NotFoundException):
            booking_service.accept_booking(ctx_for(open_tutor), "01JDOESNOTEXIST0000000000")


class TestDeclineAndCancel:
    def test_decline_records_reason(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        declined = booking_service.decline_booking(ctx_for(open_tutor), booking.id, "Out sick")

        assert declined.status == BookingStatus.DECLINED.value
        assert declined.cancel_reason == "Out sick"
        assert declined.cancelled_by_id == open_tutor.id

    def test_student_cannot_decline(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        with pytest.raises(ForbiddenException):
            booking_service.decline_booking(ctx_for(student), booking.id, "no")

    def test_only_pending_can_be_declined(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.ACCEPTED)
        with pytest.raises(InvalidBookingTransitionException):
            booking_service.decline_booking(ctx_for(open_tutor), booking.id, "no")

    @pytest.mark.parametrize("who", ["student", "tutor"])
    def test_either_party_can_cancel(self, booking_service, open_tutor, student, make_booking, who):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.ACCEPTED)
        caller = student if who == "student" else open_tutor

        cancelled = booking_service.cancel_booking(ctx_for(caller), booking.id, "Conflict came up")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancelled_by_id == caller.id
        assert cancelled.cancelled_at is not None

    def test_stranger_cannot_cancel(self, booking_service, open_tutor, student, other_student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(ctx_for(other_student), booking.id, "mine now")

    @pytest.mark.parametrize("status", [BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    def test_terminal_bookings_cannot_be_cancelled(
        self, booking_service, open_tutor, student, make_booking, status
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=status)
        with pytest.raises(InvalidBookingTransitionException):
            booking_service.cancel_booking(ctx_for(student), booking.id, "too late")

    def test_cancel_removes_calendar_event(self, booking_service, calendar, open_tutor, student, make_booking):
        booking = make_booking(
            student,
            open_tutor,
            at(NEXT_MONDAY, "10:00"),
            status=BookingStatus.CONFIRMED,
            google_calendar_event_id="evt_123",
        )

        booking_service.cancel_booking(ctx_for(student), booking.id, "Sick")

        assert {"method": "delete_event", "event_id": "evt_123"} in calendar.calls

    def test_calendar_delete_failure_does_not_undo_cancel(
        self, booking_service, calendar, open_tutor, student, make_booking
    ):
        calendar.set_error("delete_event", RuntimeError("calendar down"))
        booking = make_booking(
            student,
            open_tutor,
            at(NEXT_MONDAY, "10:00"),
            status=BookingStatus.CONFIRMED,
            google_calendar_event_id="evt_123",
        )

        cancelled = booking_service.cancel_booking(ctx_for(student), booking.id, "Sick")

        assert cancelled.status == BookingStatus.CANCELLED.value

    def test_cancelled_slot_can_be_rebooked(self, booking_service, open_tutor, student, other_student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        booking_service.cancel_booking(ctx_for(student), booking.id, "Changed plans")

        rebooked = booking_service.create_booking(
            ctx_for(other_student), _request(open_tutor, at(NEXT_MONDAY, "10:00"))
        )
        assert rebooked.status == BookingStatus.PENDING.value


class TestCompleteBooking:
    def test_started_session_completes(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(
            student, open_tutor, at(FIXED_NOW.date(), "07:00"), status=BookingStatus.CONFIRMED
        )

        completed = booking_service.complete_booking(ctx_for(open_tutor), booking.id)

        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.completed_at is not None

    def test_future_session_cannot_complete(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.ACCEPTED)
        with pytest.raises(ValidationException) as exc:
            booking_service.complete_booking(ctx_for(student), booking.id)
        assert exc.value.code == "SESSION_NOT_STARTED"

    def test_time_check_runs_before_party_check(
        self, booking_service, open_tutor, student, other_student, make_booking
    ):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"), status=BookingStatus.ACCEPTED)
        with pytest.raises(ValidationException) as exc:
            booking_service.complete_booking(ctx_for(other_student), booking.id)
        assert exc.value.code == "SESSION_NOT_STARTED"

    def test_stranger_cannot_complete_started_session(
        self, booking_service, open_tutor, student, other_student, make_booking
    ):
        booking = make_booking(
            student, open_tutor, at(FIXED_NOW.date(), "07:00"), status=BookingStatus.ACCEPTED
        )
        with pytest.raises(ForbiddenException):
            booking_service.complete_booking(ctx_for(other_student), booking.id)

    def test_pending_session_cannot_complete(self, booking_service, open_tutor, student, make_booking):
        booking = make_booking(student, open_tutor, at(FIXED_NOW.date(), "07:00"))
        with pytest.raises(InvalidBookingTransitionException):
            booking_service.complete_booking(ctx_for(student), booking.id)


class TestAvailableSlots:
    def test_steps_through_the_day(self, booking_service, open_tutor):
        slots = booking_service.get_available_slots(open_tutor.id, NEXT_MONDAY, 60)

        assert len(slots) == 15
        assert (slots[0].start_time, slots[0].end_time) == ("09:00", "10:00")
        assert (slots[1].start_time, slots[1].end_time) == ("09:30", "10:30")
        assert (slots[-1].start_time, slots[-1].end_time) == ("16:00", "17:00")
        assert slots[0].starts_at == at(NEXT_MONDAY, "09:00")
        assert slots[0].ends_at == at(NEXT_MONDAY, "10:00")

    def test_active_bookings_block_overlapping_slots(
        self, booking_service, open_tutor, student, make_booking
    ):
        make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        make_booking(student, open_tutor, at(NEXT_MONDAY, "14:00"), status=BookingStatus.DECLINED)

        starts = [s.start_time for s in booking_service.get_available_slots(open_tutor.id, NEXT_MONDAY, 60)]

        assert "09:00" in starts
        assert "09:30" not in starts
        assert "10:00" not in starts
        assert "10:30" not in starts
        assert "11:00" in starts
        assert "14:00" in starts
        assert len(starts) == 12

    def test_past_slots_are_dropped(self, db, availability_service, open_tutor):
        service = BookingService(
            db,
            availability_service=availability_service,
            clock=lambda: datetime(2025, 1, 6, 12, 10, tzinfo=timezone.utc),
        )

        starts = [s.start_time for s in service.get_available_slots(open_tutor.id, date(2025, 1, 6), 60)]

        assert starts[0] == "12:30"
        assert len(starts) == 8

    def test_closed_override_has_no_slots(self, booking_service, availability_service, open_tutor):
        availability_service.add_date_override(ctx_for(open_tutor), DateOverrideCreate(date=NEXT_MONDAY, available=False))
        assert booking_service.get_available_slots(open_tutor.id, NEXT_MONDAY, 60) == []

    def test_open_override_without_slots_is_whole_day(
        self, booking_service, availability_service, open_tutor
    ):
        availability_service.add_date_override(
            ctx_for(open_tutor), DateOverrideCreate(date=NEXT_TUESDAY, available=True)
        )

        slots = booking_service.get_available_slots(open_tutor.id, NEXT_TUESDAY, 60)

        assert slots[0].start_time == "00:00"
        assert slots[-1].start_time == "23:00"
        assert len(slots) == 47

    def test_no_weekly_slots_means_no_slots(self, booking_service, open_tutor):
        assert booking_service.get_available_slots(open_tutor.id, NEXT_TUESDAY, 60) == []

    def test_inactive_or_missing_availability(self, booking_service, tutor, make_user, make_availability):
        assert booking_service.get_available_slots(tutor.id, NEXT_MONDAY, 60) == []
        make_availability(tutor, is_active=False)
        assert booking_service.get_available_slots(tutor.id, NEXT_MONDAY, 60) == []

    def test_unknown_tutor_is_not_found(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.get_available_slots("01JDOESNOTEXIST0000000000", NEXT_MONDAY, 60)

    def test_bad_duration_is_rejected(self, booking_service, open_tutor):
        with pytest.raises(ValidationException) as exc:
            booking_service.get_available_slots(open_tutor.id, NEXT_MONDAY, 5)
        assert exc.value.code == "INVALID_DURATION"

    def test_tutor_timezone(self, db, tz_settings, tutor, student, make_availability, make_booking):
        make_availability(tutor, timezone_name="America/New_York")
        # 15:00 UTC is 10:00 in New York
        make_booking(student, tutor, at(NEXT_MONDAY, "15:00"))
        service = BookingService(
            db,
            availability_service=AvailabilityService(db, settings=tz_settings),
            settings=tz_settings,
            clock=fixed_clock,
        )

        slots = service.get_available_slots(tutor.id, NEXT_MONDAY, 60)

        assert slots[0].start_time == "09:00"
        assert slots[0].starts_at == at(NEXT_MONDAY, "14:00")
        assert "10:00" not in [s.start_time for s in slots]
        assert len(slots) == 12

    def test_spring_forward_gap_is_skipped(self, db, tz_settings, tutor, make_availability):
        # 2025-03-09 is a Sunday; New York clocks jump from 02:00 to 03:00
        make_availability(
            tutor,
            weekly_schedule={"0": [{"start_time": "01:00", "end_time": "04:00"}]},
            timezone_name="America/New_York",
        )
        availability_service = AvailabilityService(db, settings=tz_settings)
        service = BookingService(
            db, availability_service=availability_service, settings=tz_settings, clock=fixed_clock
        )
        dst_day = date(2025, 3, 9)

        slots = service.get_available_slots(tutor.id, dst_day, 60)

        assert [s.start_time for s in slots] == ["01:00", "01:30", "03:00"]
        assert slots[-1].starts_at == datetime(2025, 3, 9, 7, 0, tzinfo=timezone.utc)
        assert len({s.starts_at for s in slots}) == len(slots)
        assert all(availability_service.is_open_at(tutor.id, s.starts_at, 60) for s in slots)


class TestReads:
    def test_parties_and_admin_can_view(self, booking_service, open_tutor, student, admin, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        for user in (student, open_tutor, admin):
            assert booking_service.get_booking(ctx_for(user), booking.id).id == booking.id

    def test_stranger_cannot_view(self, booking_service, open_tutor, student, other_student, make_booking):
        booking = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))
        with pytest.raises(ForbiddenException):
            booking_service.get_booking(ctx_for(other_student), booking.id)

    def test_list_filters(self, booking_service, open_tutor, student, make_booking):
        past = make_booking(
            student, open_tutor, at(FIXED_NOW.date(), "07:00"), status=BookingStatus.COMPLETED
        )
        upcoming = make_booking(student, open_tutor, at(NEXT_MONDAY, "10:00"))

        assert [b.id for b in booking_service.get_bookings(ctx_for(student))] == [past.id, upcoming.id]
        assert [
            b.id for b in booking_service.get_bookings(ctx_for(student), BookingFilters(upcoming=True))
        ] == [upcoming.id]
        assert [
            b.id
            for b in booking_service.get_bookings(
                ctx_for(open_tutor), BookingFilters(status=BookingStatus.COMPLETED)
            )
        ] == [past.id]
        assert booking_service.get_bookings(ctx_for(open_tutor), BookingFilters(role="student")) == []
