"""
Wall-clock window arithmetic shared by availability and booking services.

Slots are ``HH:mm`` strings on the wire and minute-of-day integers here.
A window is a half-open ``(start, end)`` pair; ``end`` may be 1440 for a
window that runs to midnight.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import re
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import pytz

from app.core.constants import MINUTES_PER_DAY, TIME_OF_DAY_PATTERN

Window = Tuple[int, int]

_TIME_RE = re.compile(TIME_OF_DAY_PATTERN)

FULL_DAY: Window = (0, MINUTES_PER_DAY)


def hhmm_to_minutes(value: str) -> int:
    """Parse ``HH:mm`` into minutes since midnight."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:mm)")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_hhmm(minutes: int) -> str:
    """
    Convert minutes since midnight to HH:mm.

    1440 is rendered as "24:00".
    """
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    if minutes == MINUTES_PER_DAY:
        return "24:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def slot_to_window(slot: Mapping[str, str]) -> Window:
    return hhmm_to_minutes(slot["start_time"]), hhmm_to_minutes(slot["end_time"])


def windows_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap test. Works for ints and datetimes alike."""
    return a_start < b_end and b_start < a_end


def window_contains(outer: Window, inner: Window) -> bool:
    return outer[0] <= inner[0] and inner[1] <= outer[1]


def find_slot_problem(slots: Sequence[Mapping[str, str]]) -> Optional[str]:
    """
    Return a human-readable problem with a day's slots, or None if they are fine.

    Each slot must have start < end and no two slots may overlap.
    """
    windows: List[Window] = []
    for slot in slots:
        try:
            start, end = slot_to_window(slot)
        except (KeyError, ValueError) as exc:
            return str(exc)
        if start >= end:
            return f"start time {slot['start_time']} must be before end time {slot['end_time']}"
        windows.append((start, end))

    windows.sort()
    for previous, current in zip(windows, windows[1:]):
        if windows_overlap(previous[0], previous[1], current[0], current[1]):
            return (
                f"slots {minutes_to_hhmm(previous[0])}-{minutes_to_hhmm(previous[1])} and "
                f"{minutes_to_hhmm(current[0])}-{minutes_to_hhmm(current[1])} overlap"
            )
    return None


def day_of_week(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_to_day(value) -> date:
    """Zero out the time of day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def wall_clock_fields(instant: datetime, tz_name: Optional[str] = None) -> Tuple[date, int]:
    """
    Calendar date and minute-of-day of an instant.

    With ``tz_name`` None the UTC fields are read directly; otherwise the
    instant is first converted into that IANA zone.
    """
    moment = ensure_utc(instant)
    if tz_name:
        moment = moment.astimezone(pytz.timezone(tz_name))
    return moment.date(), moment.hour * 60 + moment.minute


def request_window(instant: datetime, duration_minutes: int, tz_name: Optional[str] = None) -> Tuple[date, Window]:
    """
    Wall-clock window of a booking request on its start day.

    The end is not wrapped at midnight, so a request running past 24:00
    yields ``end > 1440`` and is never contained in a slot.
    """
    day, start = wall_clock_fields(instant, tz_name)
    return day, (start, start + duration_minutes)


def instant_at(day: date, minutes: int, tz_name: Optional[str] = None) -> datetime:
    """UTC instant for a wall-clock minute on ``day`` in ``tz_name`` (UTC when None)."""
    naive = datetime(day.year, day.month, day.day) + timedelta(minutes=minutes)
    if not tz_name:
        return naive.replace(tzinfo=timezone.utc)
    local = pytz.timezone(tz_name).localize(naive)
    return local.astimezone(timezone.utc)


def stepped_windows(windows: Iterable[Window], duration: int, step: int) -> Iterator[Window]:
    """Walk each window in ``step`` strides, yielding ``duration``-long sub-windows that fit."""
    for start, end in windows:
        cursor = start
        while cursor + duration <= end:
            yield cursor, cursor + duration
            cursor += step
