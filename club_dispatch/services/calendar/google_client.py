"""
Google Calendar API client for the daily session events.
Creates organizer-owned events with a Meet conference attached and removes
events that lose a creation race.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any

import httpx

from club_dispatch.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
CALENDAR_PRIMARY = "primary"

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


def extract_meet_link(event: dict[str, Any]) -> str | None:
    """Video entry point of the conference, falling back to hangoutLink."""
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints") or []:
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return event.get("hangoutLink")


class GoogleCalendarService:
    """
    Thin async wrapper over the Calendar v3 events endpoints.

    Every call takes an already-valid access token; obtaining one is the
    caller's job.
    """

    def __init__(self):
        self._client = self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Calendar API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                backoff = BACKOFF_FACTOR * (2 ** (attempt - 1))
                logger.debug(
                    "Calendar API retrying request",
                    attempt=attempt,
                    status_code=response.status_code,
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue
            return response
        raise RuntimeError("Calendar API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Parse a Calendar API response.

        Raises:
            GoogleCalendarError: non-2xx status or unparseable body
        """
        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            logger.error(
                f"Calendar API {operation} failed with non-JSON response",
                status_code=response.status_code,
                response_text=response.text[:200] if response.text else "",
            )
            raise GoogleCalendarError(
                f"Calendar API error (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from None

        error_info = error_data.get("error", {})
        error_code = str(error_info.get("code", response.status_code))
        error_message = error_info.get("message", "Unknown Calendar API error")

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleCalendarError(
            self._map_calendar_error(error_code, error_message),
            error_code=error_code,
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_calendar_error(self, error_code: str, error_message: str) -> str:
        error_mappings = {
            "403": "Calendar access denied for the organizer account.",
            "404": "Calendar or event not found.",
            "400": "Invalid calendar request format.",
            "401": "Organizer calendar authorization expired.",
            "429": "Too many calendar requests. Please try again later.",
            "500": "Google Calendar service temporarily unavailable.",
        }
        return error_mappings.get(error_code, f"Calendar error: {error_message}")

    async def create_meet_event(
        self,
        access_token: str,
        summary: str,
        start_time: datetime,
        end_time: datetime,
        *,
        description: str = "",
        timezone_str: str = "UTC",
        attendees: list[str] | None = None,
        calendar_id: str = CALENDAR_PRIMARY,
    ) -> dict[str, Any]:
        """
        Create an event with a Google Meet conference.

        Attendees are added without notifications; invites go out separately.

        Returns:
            The created event resource

        Raises:
            GoogleCalendarError: If creating the event fails
        """
        url = f"{CALENDAR_API_BASE_URL}/calendars/{calendar_id}/events"
        params = {"conferenceDataVersion": 1, "sendUpdates": "none"}

        event_data = {
            "summary": summary,
            "description": description,
            "location": "Google Meet (Online)",
            "status": "confirmed",
            "start": {"dateTime": start_time.isoformat(), "timeZone": timezone_str},
            "end": {"dateTime": end_time.isoformat(), "timeZone": timezone_str},
            "conferenceData": {
                "createRequest": {
                    "requestId": uuid.uuid4().hex,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
            "visibility": "private",
            "guestsCanInviteOthers": False,
            "guestsCanModify": False,
            "anyoneCanAddSelf": False,
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 60},
                    {"method": "email", "minutes": 15},
                ],
            },
        }
        if attendees:
            event_data["attendees"] = [{"email": email} for email in attendees]

        logger.info(
            "Creating calendar event",
            summary=summary,
            start_time=start_time.isoformat(),
            calendar_id=calendar_id,
            attendees=len(attendees or []),
        )

        try:
            response = await self._request_with_retry(
                "POST",
                url,
                headers=self._get_auth_headers(access_token),
                params=params,
                json=event_data,
            )
        except httpx.RequestError as e:
            logger.error("Network error creating event", summary=summary, error=str(e))
            raise GoogleCalendarError(f"Failed to create event: {e}") from e

        event = self._handle_api_response(response, "create_event")
        logger.info("Event created", event_id=event.get("id"), summary=summary)
        return event

    async def delete_event(
        self, access_token: str, event_id: str, calendar_id: str = CALENDAR_PRIMARY
    ) -> bool:
        """
        Delete a calendar event without notifying attendees.

        Raises:
            GoogleCalendarError: If deleting the event fails
        """
        url = f"{CALENDAR_API_BASE_URL}/calendars/{calendar_id}/events/{event_id}"

        logger.info("Deleting calendar event", event_id=event_id, calendar_id=calendar_id)

        try:
            response = await self._request_with_retry(
                "DELETE",
                url,
                headers=self._get_auth_headers(access_token),
                params={"sendUpdates": "none"},
            )
        except httpx.RequestError as e:
            raise GoogleCalendarError(f"Failed to delete event: {e}") from e

        if response.status_code in (204, 410):
            logger.info("Event deleted", event_id=event_id)
            return True

        self._handle_api_response(response, "delete_event")
        return True


# Singleton instance for application use
google_calendar_service = GoogleCalendarService()
