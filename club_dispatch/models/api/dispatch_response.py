# club_dispatch/models/api/dispatch_response.py
"""Admin dispatch API models."""

import datetime
from typing import Any

from pydantic import BaseModel, Field


class DispatchRunRequest(BaseModel):
    date: datetime.date | None = Field(
        None, description="Civil day to dispatch; defaults to today"
    )


class DispatchRunResponse(BaseModel):
    success: bool
    message: str
    date: datetime.date
    reason: str | None = None
    started_at: str
    finished_at: str
    duration_seconds: float
    meeting: dict[str, Any] | None = None
    report: dict[str, Any] | None = None


class TodayMeetingInfo(BaseModel):
    id: str
    platform: str
    meeting_link: str
    start_time: str
    end_time: str
    is_default: bool
    attendee_count: int


class DispatchStatusResponse(BaseModel):
    date: datetime.date
    cron_enabled: bool
    run_time: str
    timezone_offset: str
    is_running: bool
    today_meeting: TodayMeetingInfo | None = None
    active_account_count: int
    last_run_time: str | None = None
    last_result: dict[str, Any] | None = None
