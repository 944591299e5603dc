import base64
from dataclasses import replace
from datetime import UTC, date, datetime

from club_dispatch.models.domain.subscription_domain import ActiveAccount
from club_dispatch.services.invite.ics import build_invite_ics
from club_dispatch.services.invite.transport import build_invite_message, render_invite_text
from tests.fakes import make_meeting

MEETING = make_meeting(date(2025, 3, 10), meeting_id="0b5c7a52-meeting")
RECIPIENT = ActiveAccount(
    account_id="acct-1", email="asha@example.com", first_name="Asha", last_name="Rao"
)


def _ics(**kwargs):
    return build_invite_ics(
        MEETING,
        attendee_email="asha@example.com",
        attendee_name="Asha Rao",
        organizer_email="club@example.com",
        organizer_name="Club Team",
        now=datetime(2025, 3, 10, 4, 30, tzinfo=UTC),
        **kwargs,
    )


def test_ics_is_a_request_with_stable_uid():
    ics = _ics()
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert "METHOD:REQUEST" in lines
    assert "UID:0b5c7a52-meeting@club-dispatch" in lines
    assert "DTSTART:20250310T153000Z" in lines
    assert "DTEND:20250310T163000Z" in lines
    assert "DTSTAMP:20250310T043000Z" in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_ics_lines_are_folded_and_escaped():
    ics = _ics()

    assert all(len(line.encode("utf-8")) <= 75 for line in ics.split("\r\n"))
    unfolded = ics.replace("\r\n ", "")
    assert "RSVP=TRUE;CN=Asha Rao:mailto:asha@example.com" in unfolded
    assert "LOCATION:https://meet.google.com/abc-defg-hij" in unfolded
    assert "DESCRIPTION:Join using this link: https://meet.google.com/abc-defg-hij" in unfolded


def test_ics_uid_is_identical_across_resends():
    first = [line for line in _ics().split("\r\n") if line.startswith("UID:")]
    second = [line for line in _ics().split("\r\n") if line.startswith("UID:")]

    assert first == second


def test_render_invite_text_includes_join_link():
    text, body = render_invite_text(RECIPIENT, MEETING)

    assert "Hello Asha Rao," in text
    assert "Join: https://meet.google.com/abc-defg-hij" in text
    assert 'href="https://meet.google.com/abc-defg-hij"' in body


def test_invite_message_carries_calendar_request():
    msg = build_invite_message(RECIPIENT, MEETING)

    assert msg["To"] == "Asha Rao <asha@example.com>"
    assert msg["Subject"] == MEETING.title

    content_types = [part.get_content_type() for part in msg.walk()]
    assert content_types.count("text/calendar") == 2
    assert "text/html" in content_types and "text/plain" in content_types

    attachment = [p for p in msg.walk() if p.get_filename() == "invite.ics"][0]
    assert attachment.get_param("method") == "REQUEST"
    decoded = base64.b64decode(attachment.get_payload()).decode("utf-8")
    assert "UID:0b5c7a52-meeting@club-dispatch" in decoded


def test_ics_escapes_text_values():
    meeting = replace(MEETING, title="Goals, habits\\; focus")

    ics = build_invite_ics(
        meeting, attendee_email="asha@example.com", organizer_email="club@example.com"
    )

    assert "SUMMARY:Goals\\, habits\\; focus" in ics.split("\r\n")
