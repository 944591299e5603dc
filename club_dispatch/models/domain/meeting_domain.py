# club_dispatch/models/domain/meeting_domain.py
"""Meeting domain models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

MeetingPlatform = Literal["google-meet", "zoom"]


@dataclass(slots=True)
class MeetingDraft:
    """An auto-generated meeting before it is persisted."""

    meeting_date: date
    platform: str
    start_time: datetime
    end_time: datetime
    title: str
    description: str = ""
    meeting_link: str = ""
    google_event_id: str | None = None
    zoom_meeting_id: str | None = None
    zoom_start_url: str | None = None
    is_default: bool = True
    created_by: str = "system"


@dataclass(slots=True)
class Meeting:
    """A meetings row."""

    id: str
    meeting_date: date
    platform: str
    start_time: datetime
    end_time: datetime
    meeting_link: str
    title: str
    description: str = ""
    is_default: bool = True
    created_by: str = "system"
    google_event_id: str | None = None
    zoom_meeting_id: str | None = None
    zoom_start_url: str | None = None
    created_at: datetime | None = None
    attendee_ids: list[str] = field(default_factory=list)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


@dataclass(slots=True)
class MeetingLink:
    """What a link provider hands back for a new meeting."""

    url: str
    google_event_id: str | None = None
    zoom_meeting_id: str | None = None
    zoom_start_url: str | None = None
