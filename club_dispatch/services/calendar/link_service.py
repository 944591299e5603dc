"""
Meeting link generation across providers.

Turns a MeetingDraft into a join link by creating a Google Calendar event
with a Meet conference or a scheduled Zoom meeting. Provider failures are
reported as ExternalCalendarServiceError so callers deal with one error.
"""

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.meeting_domain import Meeting, MeetingDraft, MeetingLink
from club_dispatch.services.calendar.google_client import (
    GoogleCalendarError,
    GoogleCalendarService,
    extract_meet_link,
    google_calendar_service,
)
from club_dispatch.services.calendar.zoom_client import ZoomApiError, ZoomClient, zoom_client
from club_dispatch.services.google_oauth_service import (
    GoogleOAuthError,
    GoogleOAuthService,
    get_google_oauth_service,
)

logger = get_logger(__name__)


class ExternalCalendarServiceError(Exception):
    """A meeting-link provider failed or returned no usable link."""

    def __init__(self, message: str, platform: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.platform = platform
        self.recoverable = recoverable


class MeetingLinkService:
    """Provider-agnostic join-link creation and cleanup."""

    def __init__(
        self,
        calendar: GoogleCalendarService | None = None,
        zoom: ZoomClient | None = None,
        oauth: GoogleOAuthService | None = None,
    ):
        self.calendar = calendar or google_calendar_service
        self.zoom = zoom or zoom_client
        self._oauth = oauth

    @property
    def oauth(self) -> GoogleOAuthService:
        return self._oauth or get_google_oauth_service()

    async def create_link(
        self, draft: MeetingDraft, attendees: list[str] | None = None
    ) -> MeetingLink:
        """
        Create the provider-side meeting for ``draft``.

        Raises:
            ExternalCalendarServiceError: provider error or empty link
        """
        try:
            if draft.platform == "google-meet":
                link = await self._create_google_meet(draft, attendees or [])
            elif draft.platform == "zoom":
                link = await self._create_zoom(draft)
            else:
                raise ExternalCalendarServiceError(
                    f"Unsupported meeting platform: {draft.platform}",
                    platform=draft.platform,
                    recoverable=False,
                )
        except (GoogleCalendarError, GoogleOAuthError, ZoomApiError) as e:
            logger.error(
                "Meeting link generation failed",
                platform=draft.platform,
                meeting_date=draft.meeting_date.isoformat(),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ExternalCalendarServiceError(
                f"Failed to create {draft.platform} meeting: {e}", platform=draft.platform
            ) from e

        if not link.url:
            await self.cancel(link, platform=draft.platform)
            raise ExternalCalendarServiceError(
                f"{draft.platform} returned no join link", platform=draft.platform
            )

        logger.info(
            "Meeting link generated",
            platform=draft.platform,
            meeting_date=draft.meeting_date.isoformat(),
        )
        return link

    async def _create_google_meet(self, draft: MeetingDraft, attendees: list[str]) -> MeetingLink:
        token = await self.oauth.get_access_token()
        event = await self.calendar.create_meet_event(
            token,
            draft.title,
            draft.start_time,
            draft.end_time,
            description=draft.description,
            timezone_str=settings.TIMEZONE_NAME,
            attendees=attendees,
            calendar_id=settings.GOOGLE_CALENDAR_ID,
        )
        return MeetingLink(url=extract_meet_link(event) or "", google_event_id=event.get("id"))

    async def _create_zoom(self, draft: MeetingDraft) -> MeetingLink:
        duration = int((draft.end_time - draft.start_time).total_seconds() // 60)
        meeting = await self.zoom.create_meeting(
            draft.title,
            draft.start_time,
            duration,
            agenda=draft.description,
            timezone_str=settings.TIMEZONE_NAME,
        )
        meeting_id = meeting.get("id")
        return MeetingLink(
            url=meeting.get("join_url") or "",
            zoom_meeting_id=str(meeting_id) if meeting_id is not None else None,
            zoom_start_url=meeting.get("start_url"),
        )

    async def cancel(
        self, item: MeetingDraft | Meeting | MeetingLink, platform: str | None = None
    ) -> bool:
        """
        Delete the provider-side meeting behind ``item``.

        Returns False instead of raising; used for orphan cleanup.
        """
        platform = platform or getattr(item, "platform", None)
        try:
            if item.google_event_id:
                token = await self.oauth.get_access_token()
                return await self.calendar.delete_event(
                    token, item.google_event_id, calendar_id=settings.GOOGLE_CALENDAR_ID
                )
            if item.zoom_meeting_id:
                return await self.zoom.delete_meeting(item.zoom_meeting_id)
        except (GoogleCalendarError, GoogleOAuthError, ZoomApiError) as e:
            logger.warning(
                "Failed to cancel provider meeting",
                platform=platform,
                google_event_id=item.google_event_id,
                zoom_meeting_id=item.zoom_meeting_id,
                error=str(e),
            )
            return False
        return False


meeting_link_service = MeetingLinkService()
