"""
Google OAuth access tokens for the organizer account.

Calendar event creation and Gmail sends both act as a single organizer
whose long-lived refresh token is configured in settings. This module
trades it for short-lived access tokens and caches them until shortly
before expiry.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# Refresh this long before Google's stated expiry
EXPIRY_MARGIN = timedelta(seconds=60)


class GoogleOAuthError(Exception):
    """Custom exception for Google OAuth-related errors."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class TokenResponse:
    """Structured representation of OAuth token response."""

    def __init__(self, data: dict, issued_at: datetime | None = None):
        self.access_token = data.get("access_token")
        self.token_type = data.get("token_type", "Bearer")
        self.expires_in = data.get("expires_in")
        self.scope = data.get("scope", "")

        issued_at = issued_at or datetime.now(UTC)
        self.expires_at = (
            issued_at + timedelta(seconds=int(self.expires_in)) if self.expires_in else None
        )

    def is_valid(self) -> bool:
        return bool(self.access_token and self.token_type)

    def is_fresh(self, now: datetime | None = None) -> bool:
        """True while the token is usable with the expiry margin applied."""
        if not self.expires_at:
            return False
        return (now or datetime.now(UTC)) < self.expires_at - EXPIRY_MARGIN


class GoogleOAuthService:
    """
    Refresh-token flow for the organizer account.

    Access tokens are cached in-process; concurrent callers share one
    refresh through a lock.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
    ):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.refresh_token = refresh_token or settings.GOOGLE_REFRESH_TOKEN
        self._cached: TokenResponse | None = None
        self._lock = asyncio.Lock()

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def _validate_config(self) -> None:
        if not self.client_id:
            raise GoogleOAuthError("GOOGLE_CLIENT_ID not configured")
        if not self.client_secret:
            raise GoogleOAuthError("GOOGLE_CLIENT_SECRET not configured")
        if not self.refresh_token:
            raise GoogleOAuthError("GOOGLE_REFRESH_TOKEN not configured")

    async def get_access_token(self) -> str:
        """
        Return a usable access token, refreshing it when needed.

        Raises:
            GoogleOAuthError: missing configuration or refresh rejected
        """
        if self._cached and self._cached.is_fresh():
            return self._cached.access_token

        async with self._lock:
            if self._cached and self._cached.is_fresh():
                return self._cached.access_token

            self._cached = await self.refresh_access_token()
            return self._cached.access_token

    def invalidate(self) -> None:
        """Drop the cached token, e.g. after a 401 from an API."""
        self._cached = None

    async def refresh_access_token(self) -> TokenResponse:
        """
        Exchange the configured refresh token for a new access token.

        Raises:
            GoogleOAuthError: If token refresh fails
        """
        self._validate_config()
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing organizer access token")

        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, "token_refresh")
        except httpx.RequestError as e:
            logger.error(
                "Network error during token refresh", error=str(e), error_type=type(e).__name__
            )
            raise GoogleOAuthError(f"Network error during token refresh: {e}") from e

        return self._handle_token_response(response, "token_refresh")

    async def _post_with_retry(self, url: str, data: dict, operation: str) -> httpx.Response:
        """POST form data, retrying transient statuses and network errors."""
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)
                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise
                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google OAuth request error, retrying",
                        operation=operation,
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                    )
                    await asyncio.sleep(wait_time)
                    continue

                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google OAuth transient status",
                        operation=operation,
                        status_code=response.status_code,
                        attempt=attempt,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue

                return response

        raise GoogleOAuthError(f"{operation} failed: retries exhausted")

    def _handle_token_response(self, response: httpx.Response, operation: str) -> TokenResponse:
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                logger.error(
                    f"Google {operation} failed with non-JSON response",
                    status_code=response.status_code,
                )
                raise GoogleOAuthError(
                    f"Google OAuth service error (HTTP {response.status_code})"
                ) from None

            error_code = error_data.get("error", "unknown_error")
            logger.error(
                f"Google {operation} failed",
                status_code=response.status_code,
                error_code=error_code,
                error_description=error_data.get("error_description"),
            )
            raise GoogleOAuthError(
                self._map_google_error(error_code),
                error_code=error_code,
                response_data=error_data,
            )

        try:
            token_response = TokenResponse(response.json())
        except ValueError as e:
            raise GoogleOAuthError(f"Failed to parse Google response: {e}") from e

        if not token_response.is_valid():
            raise GoogleOAuthError("Invalid token response from Google")

        logger.info(
            f"Google {operation} successful",
            expires_in=token_response.expires_in,
            scope=token_response.scope,
        )
        return token_response

    def _map_google_error(self, error_code: str) -> str:
        error_messages = {
            "invalid_grant": (
                "Organizer refresh token expired or revoked. Re-authorize the organizer account."
            ),
            "invalid_client": "Google OAuth client credentials are invalid.",
            "unauthorized_client": "Google OAuth client is not authorized for this grant.",
            "invalid_scope": "Organizer token is missing Calendar or Gmail scopes.",
        }
        return error_messages.get(error_code, f"Google token refresh failed ({error_code})")


_oauth_service: GoogleOAuthService | None = None


def get_google_oauth_service() -> GoogleOAuthService:
    """Process-wide organizer token provider."""
    global _oauth_service
    if _oauth_service is None:
        _oauth_service = GoogleOAuthService()
    return _oauth_service
