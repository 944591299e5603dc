# club_dispatch/repositories/meeting_repository.py
"""Persistence for meetings and their attendee lists."""

from datetime import date

from club_dispatch.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.meeting_domain import Meeting, MeetingDraft

logger = get_logger(__name__)


class MeetingRepository:
    """Queries over the meetings and meeting_attendees tables."""

    MEETING_COLUMNS = """
        m.id, m.meeting_date, m.platform, m.start_time, m.end_time, m.meeting_link,
        m.title, m.description, m.is_default, m.created_by, m.google_event_id,
        m.zoom_meeting_id, m.zoom_start_url, m.created_at
    """

    @classmethod
    def _row_to_meeting(cls, row: dict | None) -> Meeting | None:
        if not row:
            return None

        return Meeting(
            id=str(row["id"]),
            meeting_date=row["meeting_date"],
            platform=row["platform"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            meeting_link=row["meeting_link"],
            title=row["title"],
            description=row.get("description") or "",
            is_default=row["is_default"],
            created_by=row.get("created_by") or "system",
            google_event_id=row.get("google_event_id"),
            zoom_meeting_id=row.get("zoom_meeting_id"),
            zoom_start_url=row.get("zoom_start_url"),
            created_at=row.get("created_at"),
        )

    @classmethod
    @with_db_retry()
    async def find_for_date(cls, day: date) -> Meeting | None:
        """
        The canonical meeting for ``day``: an admin-created one if present,
        otherwise the earliest created.
        """
        query = f"""
            SELECT {cls.MEETING_COLUMNS}
            FROM meetings m
            WHERE m.meeting_date = %s
            ORDER BY m.is_default ASC, m.created_at ASC
            LIMIT 1
        """
        return cls._row_to_meeting(await fetch_one(query, (day,)))

    @classmethod
    async def create(cls, draft: MeetingDraft) -> Meeting:
        """
        Insert a meeting row.

        Raises:
            ConflictError: a default meeting already exists for the date
        """
        query = """
            INSERT INTO meetings (
                meeting_date, platform, start_time, end_time, meeting_link, title,
                description, is_default, created_by, google_event_id,
                zoom_meeting_id, zoom_start_url
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id, meeting_date, platform, start_time, end_time, meeting_link,
                      title, description, is_default, created_by, google_event_id,
                      zoom_meeting_id, zoom_start_url, created_at
        """
        row = await fetch_one(
            query,
            (
                draft.meeting_date,
                draft.platform,
                draft.start_time,
                draft.end_time,
                draft.meeting_link,
                draft.title,
                draft.description,
                draft.is_default,
                draft.created_by,
                draft.google_event_id,
                draft.zoom_meeting_id,
                draft.zoom_start_url,
            ),
        )
        meeting = cls._row_to_meeting(row)
        logger.info(
            "Meeting created",
            meeting_id=meeting.id,
            meeting_date=draft.meeting_date.isoformat(),
            platform=draft.platform,
        )
        return meeting

    @classmethod
    async def attach_attendees(cls, meeting_id: str, account_ids: list[str]) -> int:
        """Link accounts to a meeting. Already-linked accounts are left alone."""
        if not account_ids:
            return 0

        query = """
            INSERT INTO meeting_attendees (meeting_id, account_id)
            SELECT %s, unnest(%s::uuid[])
            ON CONFLICT (meeting_id, account_id) DO NOTHING
        """
        added = await execute_query(query, (meeting_id, list(account_ids)))
        logger.info(
            "Attendees attached", meeting_id=meeting_id, requested=len(account_ids), added=added
        )
        return added

    @classmethod
    async def list_attendee_ids(cls, meeting_id: str) -> list[str]:
        rows = await fetch_all(
            "SELECT account_id FROM meeting_attendees WHERE meeting_id = %s ORDER BY added_at",
            (meeting_id,),
        )
        return [str(row["account_id"]) for row in rows]
