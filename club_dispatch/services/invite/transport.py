"""
Invite delivery.

InviteTransport is the narrow interface the dispatcher fans out over.
GmailInviteTransport sends each invite as a Gmail API message from the
organizer mailbox, carrying an HTML body and an iCalendar attachment.
"""

import base64
import html
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Protocol

import httpx

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.meeting_domain import Meeting
from club_dispatch.models.domain.subscription_domain import ActiveAccount
from club_dispatch.services.google_oauth_service import (
    GoogleOAuthError,
    GoogleOAuthService,
    get_google_oauth_service,
)
from club_dispatch.services.invite.ics import build_invite_ics
from club_dispatch.services.scheduling.time_window import parse_utc_offset

logger = get_logger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
REQUEST_TIMEOUT = 20  # seconds

PLATFORM_LABELS = {"google-meet": "Google Meet", "zoom": "Zoom"}


class TransportError(Exception):
    """An invite could not be delivered to one recipient."""

    def __init__(self, message: str, recipient: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.recipient = recipient
        self.status_code = status_code


class InviteTransport(Protocol):
    async def send_invite(self, recipient: ActiveAccount, meeting: Meeting) -> None: ...


def render_invite_text(recipient: ActiveAccount, meeting: Meeting) -> tuple[str, str]:
    """Plain-text and HTML bodies for one invite."""
    tz = parse_utc_offset(settings.TIMEZONE_OFFSET)
    start = meeting.start_time.astimezone(tz)
    end = meeting.end_time.astimezone(tz)
    day = start.strftime("%A, %d %B %Y")
    span = f"{start:%I:%M %p} - {end:%I:%M %p} ({settings.TIMEZONE_NAME})"
    platform = PLATFORM_LABELS.get(meeting.platform, meeting.platform)
    name = recipient.full_name or "there"

    text = (
        f"Hello {name},\n\n"
        f"{meeting.description}\n\n"
        f"Date: {day}\n"
        f"Time: {span}\n"
        f"Platform: {platform}\n"
        f"Join: {meeting.meeting_link}\n\n"
        "The calendar invitation is attached to this email.\n\n"
        f"Best regards,\n{settings.SENDER_NAME}\n"
    )

    link = html.escape(meeting.meeting_link, quote=True)
    body = (
        "<!DOCTYPE html><html><body>"
        f"<h1>{html.escape(meeting.title)}</h1>"
        f"<p>Hello {html.escape(name)},</p>"
        f"<p>{html.escape(meeting.description)}</p>"
        f"<p><strong>Date:</strong> {html.escape(day)}<br>"
        f"<strong>Time:</strong> {html.escape(span)}<br>"
        f"<strong>Platform:</strong> {html.escape(platform)}</p>"
        f'<p><a href="{link}">Join Meeting</a></p>'
        "<p>Please join on time. The calendar invitation is attached to this email.</p>"
        f"<p>Best regards,<br>{html.escape(settings.SENDER_NAME)}</p>"
        "</body></html>"
    )
    return text, body


def build_invite_message(recipient: ActiveAccount, meeting: Meeting) -> MIMEMultipart:
    """MIME message with alternative bodies and a METHOD:REQUEST attachment."""
    text, body = render_invite_text(recipient, meeting)
    ics = build_invite_ics(
        meeting,
        attendee_email=recipient.email,
        attendee_name=recipient.full_name,
        organizer_email=settings.SENDER_EMAIL,
        organizer_name=settings.SENDER_NAME,
    )

    msg = MIMEMultipart("mixed")
    msg["To"] = formataddr((recipient.full_name, recipient.email))
    msg["From"] = formataddr((settings.SENDER_NAME, settings.SENDER_EMAIL))
    msg["Subject"] = meeting.title

    alternative = MIMEMultipart("alternative")
    alternative.attach(MIMEText(text, "plain", "utf-8"))
    alternative.attach(MIMEText(body, "html", "utf-8"))
    calendar_part = MIMEText(ics, "calendar", "utf-8")
    calendar_part.set_param("method", "REQUEST")
    alternative.attach(calendar_part)
    msg.attach(alternative)

    attachment = MIMEBase("text", "calendar", method="REQUEST", name="invite.ics")
    attachment.set_payload(ics.encode("utf-8"))
    encoders.encode_base64(attachment)
    attachment.add_header("Content-Disposition", "attachment", filename="invite.ics")
    msg.attach(attachment)
    return msg


class GmailInviteTransport:
    """Sends invites through the Gmail API as the organizer."""

    def __init__(
        self,
        oauth: GoogleOAuthService | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._oauth = oauth
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))

    @property
    def oauth(self) -> GoogleOAuthService:
        return self._oauth or get_google_oauth_service()

    async def close(self) -> None:
        await self._client.aclose()

    async def send_invite(self, recipient: ActiveAccount, meeting: Meeting) -> None:
        """
        Deliver one invite.

        Raises:
            TransportError: token refresh failed or Gmail rejected the send
        """
        raw = base64.urlsafe_b64encode(build_invite_message(recipient, meeting).as_bytes())
        payload = {"raw": raw.decode("ascii")}

        response = await self._post(payload, recipient.email)
        if response.status_code == 401:
            # stale cached token; refresh once
            self.oauth.invalidate()
            response = await self._post(payload, recipient.email)

        if not response.is_success:
            try:
                error = response.json().get("error", {}).get("message", "")
            except ValueError:
                error = ""
            raise TransportError(
                f"Gmail send failed (HTTP {response.status_code}) {error}".strip(),
                recipient=recipient.email,
                status_code=response.status_code,
            )

        logger.info(
            "Invite sent",
            email=recipient.email,
            meeting_id=meeting.id,
            message_id=response.json().get("id"),
        )

    async def _post(self, payload: dict, email: str) -> httpx.Response:
        try:
            token = await self.oauth.get_access_token()
        except GoogleOAuthError as e:
            raise TransportError(f"Organizer token unavailable: {e}", recipient=email) from e

        try:
            return await self._client.post(
                f"{GMAIL_API_BASE_URL}/users/me/messages/send",
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Network error sending invite: {e}", recipient=email) from e
