# club_dispatch/services/meeting_resolver.py
"""
Canonical meeting resolution for a civil day.

An admin-created meeting always wins. Otherwise the first default meeting
stored for the date is reused, and only when none exists is a new one
generated from settings and persisted. Losing an insert race to another
process falls back to the stored winner.
"""

import asyncio
from collections import Counter
from contextlib import asynccontextmanager
from datetime import date

from club_dispatch.config import settings
from club_dispatch.db.helpers import ConflictError
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.meeting_domain import Meeting, MeetingDraft
from club_dispatch.repositories.meeting_repository import MeetingRepository
from club_dispatch.services.calendar.link_service import MeetingLinkService, meeting_link_service
from club_dispatch.services.scheduling.time_window import default_meeting_window

logger = get_logger(__name__)


def build_default_draft(day: date) -> MeetingDraft:
    """Default meeting for ``day`` from the configured platform, time and copy."""
    start, end = default_meeting_window(
        day,
        settings.DEFAULT_MEETING_TIME,
        settings.DEFAULT_MEETING_DURATION,
        settings.TIMEZONE_OFFSET,
    )
    return MeetingDraft(
        meeting_date=day,
        platform=settings.DEFAULT_MEETING_PLATFORM,
        start_time=start,
        end_time=end,
        title=settings.DEFAULT_MEETING_TITLE,
        description=settings.DEFAULT_MEETING_DESCRIPTION,
    )


class MeetingResolver:
    def __init__(
        self,
        repository=MeetingRepository,
        link_service: MeetingLinkService | None = None,
    ):
        self.repository = repository
        self.link_service = link_service or meeting_link_service
        self._locks: dict[date, asyncio.Lock] = {}
        self._lock_users: Counter[date] = Counter()

    @asynccontextmanager
    async def _day_lock(self, day: date):
        """Per-date lock, dropped once no caller holds or waits on it."""
        lock = self._locks.setdefault(day, asyncio.Lock())
        self._lock_users[day] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[day] -= 1
            if not self._lock_users[day]:
                del self._lock_users[day]
                del self._locks[day]

    async def resolve(self, day: date) -> Meeting:
        """
        Return the single meeting for ``day``, creating it if needed.

        Raises:
            ExternalCalendarServiceError: link generation failed; nothing stored
            StoreUnavailable: store lookups or insert failed
        """
        async with self._day_lock(day):
            existing = await self.repository.find_for_date(day)
            if existing:
                logger.info(
                    "Using existing meeting",
                    meeting_id=existing.id,
                    meeting_date=day.isoformat(),
                    is_default=existing.is_default,
                )
                return existing

            return await self._create_default(day)

    async def _create_default(self, day: date) -> Meeting:
        draft = build_default_draft(day)
        attendees = settings.special_emails() if draft.platform == "google-meet" else []

        link = await self.link_service.create_link(draft, attendees=attendees)
        draft.meeting_link = link.url
        draft.google_event_id = link.google_event_id
        draft.zoom_meeting_id = link.zoom_meeting_id
        draft.zoom_start_url = link.zoom_start_url

        try:
            meeting, created = await self._store(day, draft)
        except Exception as e:
            logger.error(
                "Failed to store meeting, cancelling provider meeting",
                meeting_date=day.isoformat(),
                error=str(e),
                error_type=type(e).__name__,
            )
            await self.link_service.cancel(draft)
            raise

        if not created:
            logger.info(
                "Lost meeting creation race, using stored meeting",
                meeting_id=meeting.id,
                meeting_date=day.isoformat(),
            )
            await self.link_service.cancel(draft)
            return meeting

        logger.info(
            "Default meeting created",
            meeting_id=meeting.id,
            meeting_date=day.isoformat(),
            platform=meeting.platform,
        )
        return meeting

    async def _store(self, day: date, draft: MeetingDraft) -> tuple[Meeting, bool]:
        """Insert ``draft``; on a default-per-day conflict return the stored winner."""
        try:
            return await self.repository.create(draft), True
        except ConflictError:
            winner = await self.repository.find_for_date(day)
            if winner is None:
                raise
            return winner, False


meeting_resolver = MeetingResolver()
