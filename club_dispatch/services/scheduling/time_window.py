# club_dispatch/services/scheduling/time_window.py
"""
Civil-day and meeting-window helpers for a fixed UTC offset.

All functions are pure: the current instant is injectable so callers and
tests get deterministic results.
"""

import re
from datetime import UTC, date, datetime, time, timedelta, timezone

_OFFSET_RE = re.compile(r"^(?:UTC)?([+-])(\d{1,2}):?(\d{2})$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_utc_offset(offset: str) -> timezone:
    """
    Parse an offset such as ``+05:30``, ``-0800`` or ``UTC+01:00``.

    Raises:
        ValueError: if the offset is malformed or outside +/-14:00
    """
    value = offset.strip().upper()
    if value in ("Z", "UTC", "+00:00"):
        return UTC

    match = _OFFSET_RE.match(value)
    if not match:
        raise ValueError(f"Invalid UTC offset: {offset!r}")

    sign, hours, minutes = match.group(1), int(match.group(2)), int(match.group(3))
    if minutes >= 60 or hours > 14 or (hours == 14 and minutes):
        raise ValueError(f"UTC offset out of range: {offset!r}")

    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if sign == "-" else delta)


def parse_start_time(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock time."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid start time: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Start time out of range: {value!r}")
    return time(hours, minutes)


def today(tz_offset: str, now: datetime | None = None) -> date:
    """
    Civil date in the given fixed offset.

    Args:
        tz_offset: e.g. ``+05:30``
        now: aware instant to evaluate; defaults to the current time.
            Naive values are taken as UTC.
    """
    tz = parse_utc_offset(tz_offset)
    instant = now or datetime.now(UTC)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(tz).date()


def default_meeting_window(
    day: date, start_time: str, duration_minutes: int, tz_offset: str
) -> tuple[datetime, datetime]:
    """Start and end instants of the default meeting on ``day``."""
    if duration_minutes <= 0:
        raise ValueError("Meeting duration must be positive")

    tz = parse_utc_offset(tz_offset)
    start = datetime.combine(day, parse_start_time(start_time), tzinfo=tz)
    return start, start + timedelta(minutes=duration_minutes)


def next_run_at(run_time: str, tz_offset: str, now: datetime | None = None) -> datetime:
    """Next occurrence of ``run_time`` strictly after ``now`` in the given offset."""
    tz = parse_utc_offset(tz_offset)
    instant = (now or datetime.now(UTC)).astimezone(tz)
    candidate = datetime.combine(instant.date(), parse_start_time(run_time), tzinfo=tz)
    if candidate <= instant:
        candidate += timedelta(days=1)
    return candidate


def format_short_date(day: date) -> str:
    """``DD/MM/YY`` rendering used in subscriber-facing messages."""
    return day.strftime("%d/%m/%y")
