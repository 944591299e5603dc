# club_dispatch/services/invite/ics.py
"""
iCalendar (RFC 5545) invite bodies.

The UID is derived from the meeting id, so a resent invite updates the
attendee's existing calendar entry instead of adding a second one.
"""

from datetime import UTC, datetime

from club_dispatch.models.domain.meeting_domain import Meeting

PRODID = "-//Club Session Dispatch//Daily Session//EN"
UID_DOMAIN = "club-dispatch"


def _escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _fold(line: str) -> list[str]:
    """Split a content line into 75-octet chunks with leading-space continuations."""
    encoded = line.encode("utf-8")
    if len(encoded) <= 75:
        return [line]

    parts: list[str] = []
    current = b""
    limit = 75
    for char in line:
        chunk = char.encode("utf-8")
        if len(current) + len(chunk) > limit:
            parts.append(current.decode("utf-8"))
            current = b" "
            limit = 75
        current += chunk
    parts.append(current.decode("utf-8"))
    return parts


def _utc(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def build_invite_ics(
    meeting: Meeting,
    *,
    attendee_email: str,
    attendee_name: str = "",
    organizer_email: str,
    organizer_name: str = "",
    now: datetime | None = None,
) -> str:
    """Render a METHOD:REQUEST calendar object for one attendee."""
    description = meeting.description
    if meeting.meeting_link:
        description = f"{description}\n\nJoin using this link: {meeting.meeting_link}".strip()

    attendee_cn = _escape(attendee_name or attendee_email)
    organizer_cn = _escape(organizer_name or organizer_email)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{meeting.id}@{UID_DOMAIN}",
        f"DTSTAMP:{_utc(now or datetime.now(UTC))}",
        f"DTSTART:{_utc(meeting.start_time)}",
        f"DTEND:{_utc(meeting.end_time)}",
        f"SUMMARY:{_escape(meeting.title)}",
        f"DESCRIPTION:{_escape(description)}",
        f"LOCATION:{_escape(meeting.meeting_link)}",
        f"URL:{meeting.meeting_link}",
        f"ORGANIZER;CN={organizer_cn}:mailto:{organizer_email}",
        (
            "ATTENDEE;CUTYPE=INDIVIDUAL;ROLE=REQ-PARTICIPANT;PARTSTAT=NEEDS-ACTION;"
            f"RSVP=TRUE;CN={attendee_cn}:mailto:{attendee_email}"
        ),
        "SEQUENCE:0",
        "STATUS:CONFIRMED",
        "TRANSP:OPAQUE",
        "END:VEVENT",
        "END:VCALENDAR",
    ]

    folded: list[str] = []
    for line in lines:
        folded.extend(_fold(line))
    return "\r\n".join(folded) + "\r\n"
