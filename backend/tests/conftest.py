# backend/tests/conftest.py
"""
Pytest configuration for the tutoring backend.

Every test runs against an in-memory SQLite database shared through
StaticPool. Each test gets a session joined to an outer transaction that is
rolled back afterwards; service commits only release savepoints.
"""

import os

# Set before any app import so settings never point at a real Redis or calendar
os.environ.setdefault("CI", "1")
os.environ["REDIS_URL"] = ""
os.environ["GOOGLE_CALENDAR_ENABLED"] = "false"

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_db,
)
from app.auth import create_access_token
from app.core.booking_lock import reset_scheduling_locks
from app.core.config import Settings, settings
from app.core.enums import RoleName
from app.core.request_context import RequestContext
from app.database import Base
from app.integrations import FakeCalendarNotifier
from app.main import app as fastapi_app
import app.models  # noqa: F401
from app.models.availability import TutorAvailability
from app.models.booking import Booking, BookingStatus
from app.models.user import User
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService

# Monday. Fixtures build schedules around the following week.
FIXED_NOW = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)
NEXT_MONDAY = date(2025, 1, 13)
NEXT_TUESDAY = date(2025, 1, 14)

WEEKDAY_9_TO_5 = [{"start_time": "09:00", "end_time": "17:00"}]


def at(day: date, hhmm: str) -> datetime:
    """UTC instant for a wall-clock time on a date."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


# ============================================================================
# Database
# ============================================================================


@pytest.fixture(scope="session")
def _engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite defers BEGIN; take over so SAVEPOINT behaves
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(_engine) -> Iterator[Session]:
    """
    Transactional session; everything it writes is rolled back after the test.

    Factories commit so a service-level rollback cannot discard fixture rows.
    """
    connection = _engine.connect()
    transaction = connection.begin()
    TestingSession = sessionmaker(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def _fresh_scheduling_locks() -> Iterator[None]:
    reset_scheduling_locks()
    yield
    reset_scheduling_locks()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(role: RoleName = RoleName.STUDENT, **overrides: Any) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=overrides.pop("email", f"{role.value}{n}@example.edu"),
            first_name=overrides.pop("first_name", role.value.title()),
            last_name=overrides.pop("last_name", f"Number{n}"),
            role=role.value,
            skills=overrides.pop("skills", []),
            **overrides,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def tutor(make_user) -> User:
    return make_user(RoleName.TUTOR, first_name="Ada", last_name="Lovelace", skills=["Math", "Physics"])


@pytest.fixture
def student(make_user) -> User:
    return make_user(RoleName.STUDENT, first_name="Sam", last_name="Student")


@pytest.fixture
def other_student(make_user) -> User:
    return make_user(RoleName.STUDENT, first_name="Olive", last_name="Other")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN, first_name="Alex", last_name="Admin")


@pytest.fixture
def make_availability(db: Session) -> Callable[..., TutorAvailability]:
    def _make(
        tutor: User,
        weekly_schedule: Optional[Dict[str, List[Dict[str, str]]]] = None,
        is_active: bool = True,
        timezone_name: str = "UTC",
    ) -> TutorAvailability:
        availability = TutorAvailability(
            tutor_id=tutor.id,
            timezone=timezone_name,
            weekly_schedule=weekly_schedule if weekly_schedule is not None else {"1": WEEKDAY_9_TO_5},
            subjects=tutor.skill_list,
            session_durations=[30, 60],
            is_active=is_active,
        )
        db.add(availability)
        db.commit()
        return availability

    return _make


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    """Insert a booking directly, bypassing the service checks."""

    def _make(
        student: User,
        tutor: User,
        scheduled_at: datetime,
        duration: int = 60,
        status: BookingStatus = BookingStatus.PENDING,
        **overrides: Any,
    ) -> Booking:
        booking = Booking(
            student_id=student.id,
            tutor_id=tutor.id,
            subject=overrides.pop("subject", "Math"),
            scheduled_at=scheduled_at,
            duration=duration,
            status=status.value,
            **overrides,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make


def ctx_for(user: User) -> RequestContext:
    return RequestContext(user_id=user.id, role=user.role_name, request_id="test-request")


# ============================================================================
# Services
# ============================================================================


@pytest.fixture
def calendar() -> FakeCalendarNotifier:
    return FakeCalendarNotifier()


@pytest.fixture
def availability_service(db: Session) -> AvailabilityService:
    return AvailabilityService(db)


@pytest.fixture
def booking_service(db: Session, availability_service, calendar) -> BookingService:
    return BookingService(
        db,
        availability_service=availability_service,
        calendar_notifier=calendar,
        clock=fixed_clock,
    )


@pytest.fixture
def tz_settings() -> Settings:
    """Settings that resolve schedules in the tutor's own timezone."""
    return settings.model_copy(update={"availability_use_tutor_timezone": True})


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(db: Session, calendar: FakeCalendarNotifier) -> Iterator[TestClient]:
    def _get_db() -> Iterator[Session]:
        yield db

    def _availability_service() -> AvailabilityService:
        return AvailabilityService(db)

    def _booking_service() -> BookingService:
        return BookingService(
            db,
            availability_service=AvailabilityService(db),
            calendar_notifier=calendar,
            clock=fixed_clock,
        )

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_availability_service] = _availability_service
    fastapi_app.dependency_overrides[get_booking_service] = _booking_service
    try:
        with TestClient(fastapi_app) as test_client:
            yield test_client
    finally:
        fastapi_app.dependency_overrides.clear()


def auth_headers(user: User, expires_in: Optional[timedelta] = None) -> Dict[str, str]:
    token = create_access_token({"sub": user.id}, expires_delta=expires_in)
    return {"Authorization": f"Bearer {token}"}
