"""
Zoom API client using server-to-server OAuth (account credentials grant).
"""

import asyncio
import base64
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"
ZOOM_API_BASE_URL = "https://api.zoom.us/v2"

REQUEST_TIMEOUT = 20  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class ZoomApiError(Exception):
    """Custom exception for Zoom API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class ZoomClient:
    """Creates and deletes scheduled Zoom meetings for the configured host."""

    def __init__(
        self,
        account_id: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        user_id: str | None = None,
    ):
        self.account_id = account_id or settings.ZOOM_ACCOUNT_ID
        self.client_id = client_id or settings.ZOOM_CLIENT_ID
        self.client_secret = client_secret or settings.ZOOM_CLIENT_SECRET
        self.user_id = user_id or settings.ZOOM_USER_ID
        self._token: str | None = None
        self._token_expires_at: datetime | None = None

    def _validate_config(self) -> None:
        missing = [
            name
            for name, value in (
                ("ZOOM_ACCOUNT_ID", self.account_id),
                ("ZOOM_CLIENT_ID", self.client_id),
                ("ZOOM_CLIENT_SECRET", self.client_secret),
                ("ZOOM_USER_ID", self.user_id),
            )
            if not value
        ]
        if missing:
            raise ZoomApiError(f"Zoom credentials not configured: {', '.join(missing)}")

    async def _request_with_retry(
        self, client: httpx.AsyncClient, method: str, url: str, **kwargs
    ) -> httpx.Response:
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise ZoomApiError(f"Zoom request failed: {e}") from e
                await asyncio.sleep(BACKOFF_FACTOR * (2 ** (attempt - 1)))
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                logger.debug(
                    "Zoom API retrying request", attempt=attempt, status_code=response.status_code
                )
                await asyncio.sleep(BACKOFF_FACTOR * (2 ** (attempt - 1)))
                continue
            return response
        raise RuntimeError("Zoom API retry loop exhausted")

    def _raise_for_error(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        try:
            data = response.json()
        except ValueError:
            data = {}
        message = data.get("message") or data.get("reason") or f"HTTP {response.status_code}"
        logger.error(
            f"Zoom {operation} failed",
            status_code=response.status_code,
            error_code=data.get("code") or data.get("error"),
            error_message=message,
        )
        raise ZoomApiError(
            f"Zoom {operation} failed: {message}",
            error_code=str(data.get("code") or data.get("error") or response.status_code),
            status_code=response.status_code,
        )

    async def get_access_token(self, client: httpx.AsyncClient) -> str:
        """Account-credentials token, cached until shortly before expiry."""
        now = datetime.now(UTC)
        if self._token and self._token_expires_at and now < self._token_expires_at:
            return self._token

        self._validate_config()
        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode()
        response = await self._request_with_retry(
            client,
            "POST",
            ZOOM_TOKEN_URL,
            params={"grant_type": "account_credentials", "account_id": self.account_id},
            headers={
                "Authorization": f"Basic {basic}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        self._raise_for_error(response, "token")

        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = now + timedelta(seconds=int(data.get("expires_in", 3600)) - 60)
        return self._token

    async def create_meeting(
        self,
        topic: str,
        start_time: datetime,
        duration_minutes: int,
        *,
        agenda: str = "",
        timezone_str: str = "UTC",
    ) -> dict[str, Any]:
        """
        Schedule a meeting for the configured host.

        Returns:
            Zoom meeting resource (``id``, ``join_url``, ``start_url``, ...)

        Raises:
            ZoomApiError: credentials missing or API rejected the request
        """
        payload = {
            "topic": topic,
            "type": 2,
            "start_time": start_time.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": duration_minutes,
            "timezone": timezone_str,
            "agenda": agenda,
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "mute_upon_entry": True,
                "approval_type": 0,
                "registration_type": 1,
            },
        }

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            token = await self.get_access_token(client)
            logger.info("Creating Zoom meeting", topic=topic, start_time=payload["start_time"])
            response = await self._request_with_retry(
                client,
                "POST",
                f"{ZOOM_API_BASE_URL}/users/{self.user_id}/meetings",
                headers={"Authorization": f"Bearer {token}"},
                json=payload,
            )
            self._raise_for_error(response, "create_meeting")

        meeting = response.json()
        logger.info("Zoom meeting created", zoom_meeting_id=meeting.get("id"))
        return meeting

    async def delete_meeting(self, meeting_id: str) -> bool:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            token = await self.get_access_token(client)
            response = await self._request_with_retry(
                client,
                "DELETE",
                f"{ZOOM_API_BASE_URL}/meetings/{meeting_id}",
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == 404:
                return True
            self._raise_for_error(response, "delete_meeting")

        logger.info("Zoom meeting deleted", zoom_meeting_id=meeting_id)
        return True


zoom_client = ZoomClient()
