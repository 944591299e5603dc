from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

# Legacy rows were written with an empty payment status; they are still treated as paid
# until the data owners confirm otherwise.
DEFAULT_ACCEPTED_PAYMENT_STATES = [
    "completed",
    "paid",
    "success",
    "admin-added",
    "admin-created",
    "",
]


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "postgresql://localhost:5432/club_dispatch"

    # =================================================================
    # DATABASE POOL SETTINGS - Simple and configurable
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # CIVIL DAY AND MEETING DEFAULTS
    # =================================================================
    TIMEZONE_OFFSET: str = "+05:30"  # fixed offset, no DST
    TIMEZONE_NAME: str = "Asia/Kolkata"  # label used in invites and calendar events
    DEFAULT_MEETING_PLATFORM: str = "google-meet"
    DEFAULT_MEETING_TIME: str = "21:00"
    DEFAULT_MEETING_DURATION: int = 60  # minutes
    DEFAULT_MEETING_TITLE: str = "Club Daily Session"
    DEFAULT_MEETING_DESCRIPTION: str = (
        "Join us for today's club session to learn how to achieve any goal in life."
    )
    SPECIAL_EMAILS: str = ""  # comma-separated, added to every auto-created meeting

    # =================================================================
    # SUBSCRIPTIONS
    # =================================================================
    ACCEPTED_PAYMENT_STATES: list[str] = DEFAULT_ACCEPTED_PAYMENT_STATES
    MAX_SUBSCRIPTION_DAYS: int = 365
    UNLIMITED_GRANT_DAYS: int = 36500  # end date of an admin unlimited grant

    # =================================================================
    # DAILY DISPATCH JOB
    # =================================================================
    CRON_JOBS_ENABLED: bool = True
    DISPATCH_RUN_TIME: str = "10:00"
    MAX_CONCURRENT_INVITES: int = 10
    INVITE_SEND_TIMEOUT_SECONDS: float = 30.0
    MEETING_RESOLUTION_TIMEOUT_SECONDS: float = 60.0

    # Google OAuth (organizer account used for Calendar + Gmail)
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REFRESH_TOKEN: str | None = None
    GOOGLE_CALENDAR_ID: str = "primary"

    # Invite sender
    SENDER_EMAIL: str = "noreply@example.com"
    SENDER_NAME: str = "Club Team"

    # Zoom server-to-server OAuth
    ZOOM_ACCOUNT_ID: str | None = None
    ZOOM_CLIENT_ID: str | None = None
    ZOOM_CLIENT_SECRET: str | None = None
    ZOOM_USER_ID: str | None = None

    # Admin trigger surface
    ADMIN_JWT_SECRET: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("DEFAULT_MEETING_PLATFORM")
    @classmethod
    def _check_platform(cls, value: str) -> str:
        if value not in ("google-meet", "zoom"):
            raise ValueError(f"Unsupported meeting platform: {value}")
        return value

    def special_emails(self) -> list[str]:
        """Parse SPECIAL_EMAILS into a clean list of addresses."""
        return [email.strip() for email in self.SPECIAL_EMAILS.split(",") if email.strip()]

    def accepted_payment_states(self) -> frozenset[str]:
        return frozenset(self.ACCEPTED_PAYMENT_STATES)

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 5,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
