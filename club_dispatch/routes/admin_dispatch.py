"""
Admin dispatch routes.
Manual trigger and status for the daily invite dispatch.
"""

from fastapi import APIRouter, Body, Depends, HTTPException, status

from club_dispatch.auth.verify import admin_dependency
from club_dispatch.config import settings
from club_dispatch.db.helpers import DatabaseError
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.jobs.daily_dispatch_job import TRIGGER_MANUAL, daily_dispatch_job
from club_dispatch.models.api.dispatch_response import (
    DispatchRunRequest,
    DispatchRunResponse,
    DispatchStatusResponse,
    TodayMeetingInfo,
)
from club_dispatch.repositories.meeting_repository import MeetingRepository
from club_dispatch.services.active_selector import active_subscription_selector
from club_dispatch.services.scheduling.time_window import today

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/dispatch", tags=["admin"])


@router.post("/run", response_model=DispatchRunResponse)
async def run_dispatch(
    request: DispatchRunRequest | None = Body(None),
    claims: dict = Depends(admin_dependency),
):
    """Run the daily dispatch now, optionally for a specific date."""
    day = request.date if request else None
    logger.info(
        "Manual dispatch requested",
        admin=claims.get("sub"),
        date=day.isoformat() if day else None,
    )

    result = await daily_dispatch_job.run_once(day, trigger=TRIGGER_MANUAL)
    return DispatchRunResponse(**result.to_dict())


@router.get("/status", response_model=DispatchStatusResponse)
async def dispatch_status(claims: dict = Depends(admin_dependency)):
    """Cron toggle, today's meeting, active account count and last run."""
    current_day = today(settings.TIMEZONE_OFFSET)

    try:
        meeting = await MeetingRepository.find_for_date(current_day)
        attendee_ids = await MeetingRepository.list_attendee_ids(meeting.id) if meeting else []
        accounts = await active_subscription_selector.select(current_day)
    except DatabaseError as e:
        logger.error("Failed to load dispatch status", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Subscription store unavailable",
        ) from e

    job_status = daily_dispatch_job.get_job_status()
    return DispatchStatusResponse(
        date=current_day,
        cron_enabled=job_status["cron_enabled"],
        run_time=job_status["run_time"],
        timezone_offset=job_status["timezone_offset"],
        is_running=job_status["is_running"],
        today_meeting=(
            TodayMeetingInfo(
                id=meeting.id,
                platform=meeting.platform,
                meeting_link=meeting.meeting_link,
                start_time=meeting.start_time.isoformat(),
                end_time=meeting.end_time.isoformat(),
                is_default=meeting.is_default,
                attendee_count=len(attendee_ids),
            )
            if meeting
            else None
        ),
        active_account_count=len(accounts),
        last_run_time=job_status["last_run_time"],
        last_result=job_status["last_result"],
    )
