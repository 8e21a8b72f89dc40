"""Google Calendar integration client.

Creates and deletes calendar events for accepted tutoring sessions through the
Calendar v3 REST API. Auth uses a long-lived OAuth refresh token exchanged for
short-lived access tokens. Events request a Google Meet conference so the
booking can pick up an auto-generated meeting link.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from typing import Any, Protocol, cast
from urllib.parse import quote
import uuid

import httpx
from pydantic import SecretStr

from ..core.config import Settings

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_BASE_URL = "https://www.googleapis.com/calendar/v3"


class GoogleCalendarError(RuntimeError):
    """Raised when Google OAuth or the Calendar API responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class CalendarBooking:
    """Booking fields a calendar event is built from."""

    booking_id: str
    subject: str
    scheduled_at: datetime
    ends_at: datetime
    student_name: str
    student_email: str
    tutor_name: str
    tutor_email: str
    description: str | None = None
    notes: str | None = None

    @classmethod
    def from_booking(cls, booking: Any) -> "CalendarBooking":
        def _utc(value: datetime) -> datetime:
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)

        return cls(
            booking_id=booking.id,
            subject=booking.subject,
            scheduled_at=_utc(booking.scheduled_at),
            ends_at=_utc(booking.ends_at),
            student_name=booking.student.full_name,
            student_email=booking.student.email,
            tutor_name=booking.tutor.full_name,
            tutor_email=booking.tutor.email,
            description=booking.description,
            notes=booking.notes,
        )


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    meet_link: str | None = None
    html_link: str | None = None


class CalendarNotifier(Protocol):
    """Best-effort calendar sink. Either call may raise; callers must catch."""

    def create_event(self, booking: CalendarBooking) -> CalendarEvent | None: ...

    def delete_event(self, event_id: str) -> None: ...


def build_event_body(booking: CalendarBooking) -> dict[str, Any]:
    """Calendar v3 event resource for a tutoring session."""
    lines = ["Peer Tutoring Session", "", f"Subject: {booking.subject}"]
    if booking.description:
        lines.append(f"Description: {booking.description}")
    lines += [
        "",
        f"Student: {booking.student_name} ({booking.student_email})",
        f"Tutor: {booking.tutor_name} ({booking.tutor_email})",
    ]
    if booking.notes:
        lines += ["", f"Notes: {booking.notes}"]

    return {
        "summary": f"Tutoring Session: {booking.subject}",
        "description": "\n".join(lines),
        "start": {"dateTime": booking.scheduled_at.isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": booking.ends_at.isoformat(), "timeZone": "UTC"},
        "attendees": [{"email": booking.student_email}, {"email": booking.tutor_email}],
        "conferenceData": {
            "createRequest": {
                "requestId": f"booking-{booking.booking_id}-{uuid.uuid4().hex[:8]}",
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},  # 1 day before
                {"method": "popup", "minutes": 30},
            ],
        },
    }


class GoogleCalendarClient:
    """HTTP client for the Google Calendar v3 REST API."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str | SecretStr,
        refresh_token: str | SecretStr,
        calendar_id: str = "primary",
        timeout: float = 10.0,
        token_url: str = GOOGLE_TOKEN_URL,
        base_url: str = GOOGLE_CALENDAR_BASE_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = (
            client_secret.get_secret_value() if isinstance(client_secret, SecretStr) else client_secret
        )
        self._refresh_token = (
            refresh_token.get_secret_value() if isinstance(refresh_token, SecretStr) else refresh_token
        )
        self._calendar_id = calendar_id
        self._timeout = timeout
        self._token_url = token_url
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._access_token: str | None = None
        self._access_token_refresh_at: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleCalendarClient":
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            refresh_token=settings.google_refresh_token,
            calendar_id=settings.google_calendar_id,
            timeout=settings.google_calendar_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret and self._refresh_token)

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    def _get_access_token(self) -> str:
        """Return a cached access token, refreshing before expiry."""
        now = time.monotonic()
        if self._access_token is not None and now < self._access_token_refresh_at:
            return self._access_token

        try:
            with self._client() as client:
                response = client.post(
                    self._token_url,
                    data={
                        "grant_type": "refresh_token",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "refresh_token": self._refresh_token,
                    },
                )
        except httpx.TransportError as exc:
            logger.error("Google OAuth unreachable: %s", exc)
            raise GoogleCalendarError(f"Google OAuth unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Google OAuth error %s: %s", response.status_code, response.text[:500])
            raise GoogleCalendarError(
                "Failed to refresh Google access token",
                status_code=response.status_code,
                details=self._error_body(response),
            )

        payload = response.json()
        token = payload.get("access_token")
        if not token:
            raise GoogleCalendarError("Google OAuth response did not include an access token")
        expires_in = int(payload.get("expires_in", 3600))
        self._access_token = cast(str, token)
        # Rotate a minute early
        self._access_token_refresh_at = now + max(expires_in - 60, 0)
        return self._access_token

    @staticmethod
    def _error_body(response: httpx.Response) -> dict[str, Any]:
        try:
            parsed = response.json()
        except ValueError:
            return {"raw": response.text[:500]}
        if isinstance(parsed, dict):
            return parsed
        return {"raw": response.text[:500]}

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request to the Calendar API."""
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self._get_access_token()}",
            "Content-Type": "application/json",
        }
        try:
            with self._client() as client:
                response = client.request(method, url, headers=headers, json=json_body, params=params)
        except httpx.TransportError as exc:
            logger.error("Google Calendar unreachable for %s %s: %s", method, path, exc)
            raise GoogleCalendarError(f"Google Calendar unreachable: {exc}") from exc

        if response.status_code >= 400:
            body = self._error_body(response)
            error = body.get("error")
            message = (
                error.get("message") if isinstance(error, dict) else None
            ) or response.text[:500]
            logger.error(
                "Google Calendar error %s for %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:500],
            )
            raise GoogleCalendarError(message, status_code=response.status_code, details=body)

        if response.status_code == 204 or not response.content:
            return {}
        return cast(dict[str, Any], response.json())

    def create_event(self, booking: CalendarBooking) -> CalendarEvent | None:
        """Insert an event with a Meet conference; None when calendar sync is not configured."""
        if not self.is_configured:
            logger.warning("Google Calendar not configured, skipping event creation")
            return None

        data = self._request(
            "POST",
            f"calendars/{quote(self._calendar_id, safe='')}/events",
            json_body=build_event_body(booking),
            params={"sendUpdates": "all", "conferenceDataVersion": 1},
        )
        event = CalendarEvent(
            id=cast(str, data["id"]),
            meet_link=data.get("hangoutLink"),
            html_link=data.get("htmlLink"),
        )
        logger.info(
            "Google Calendar event created",
            extra={"event_id": event.id, "booking_id": booking.booking_id},
        )
        return event

    def delete_event(self, event_id: str) -> None:
        """Delete an event. Events already removed on Google's side count as deleted."""
        if not self.is_configured or not event_id:
            return
        try:
            self._request(
                "DELETE",
                f"calendars/{quote(self._calendar_id, safe='')}/events/{quote(event_id, safe='')}",
                params={"sendUpdates": "all"},
            )
        except GoogleCalendarError as exc:
            if exc.status_code in (404, 410):
                logger.info("Google Calendar event already gone", extra={"event_id": event_id})
                return
            raise
        logger.info("Google Calendar event deleted", extra={"event_id": event_id})


class FakeCalendarNotifier:
    """In-memory stub for testing/non-production environments."""

    def __init__(self, *, meet_links: bool = True, **kwargs: Any) -> None:
        self._calls: list[dict[str, Any]] = []
        self._errors: dict[str, Exception] = {}
        self._meet_links = meet_links
        self.events: dict[str, CalendarBooking] = {}

    def set_error(self, method: str, error: Exception) -> None:
        """Inject a method-specific error for deterministic failure testing."""
        self._errors[method] = error

    def clear_errors(self) -> None:
        self._errors.clear()

    @property
    def calls(self) -> list[dict[str, Any]]:
        return list(self._calls)

    def _raise_if_injected(self, method: str) -> None:
        error = self._errors.get(method)
        if error is not None:
            raise error

    def create_event(self, booking: CalendarBooking) -> CalendarEvent | None:
        self._calls.append({"method": "create_event", "booking_id": booking.booking_id})
        self._raise_if_injected("create_event")
        event_id = f"fake_event_{uuid.uuid4().hex[:12]}"
        self.events[event_id] = booking
        meet_link = f"https://meet.google.com/fake-{event_id[-6:]}" if self._meet_links else None
        return CalendarEvent(id=event_id, meet_link=meet_link)

    def delete_event(self, event_id: str) -> None:
        self._calls.append({"method": "delete_event", "event_id": event_id})
        self._raise_if_injected("delete_event")
        self.events.pop(event_id, None)
