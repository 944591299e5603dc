"""
Daily dispatch job.

Resolves the day's meeting, selects every account with an active paid
subscription and sends each one an invite. Runs on a daily schedule in
the worker process, or on demand from the admin API.
"""

import asyncio
from datetime import UTC, date, datetime

import structlog

from club_dispatch.config import settings
from club_dispatch.db.helpers import DatabaseError
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.dispatch_domain import DailyDispatchResult, DispatchReport
from club_dispatch.repositories.meeting_repository import MeetingRepository
from club_dispatch.services.active_selector import (
    ActiveSubscriptionSelector,
    active_subscription_selector,
)
from club_dispatch.services.calendar.link_service import ExternalCalendarServiceError
from club_dispatch.services.invite.dispatcher import InviteDispatcher
from club_dispatch.services.invite.transport import GmailInviteTransport
from club_dispatch.services.meeting_resolver import MeetingResolver, meeting_resolver
from club_dispatch.services.scheduling.time_window import next_run_at, today

logger = get_logger(__name__)

TRIGGER_SCHEDULED = "scheduled"
TRIGGER_MANUAL = "manual"


class DailyDispatchJobError(Exception):
    """Custom exception for daily dispatch job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class DailyDispatchJob:
    """
    One dispatch run per call, with overlap protection inside the process.

    Scheduled runs honour CRON_JOBS_ENABLED; manual runs always execute.
    """

    def __init__(
        self,
        resolver: MeetingResolver | None = None,
        selector: ActiveSubscriptionSelector | None = None,
        dispatcher: InviteDispatcher | None = None,
        meeting_repository=MeetingRepository,
    ):
        self.resolver = resolver or meeting_resolver
        self.selector = selector or active_subscription_selector
        self._dispatcher = dispatcher
        self._owns_dispatcher = dispatcher is None
        self.meeting_repository = meeting_repository
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.last_result: DailyDispatchResult | None = None

    @property
    def dispatcher(self) -> InviteDispatcher:
        if self._dispatcher is None:
            self._dispatcher = InviteDispatcher(GmailInviteTransport())
        return self._dispatcher

    async def close(self) -> None:
        """Close the Gmail transport this job created, if any."""
        if self._owns_dispatcher and self._dispatcher is not None:
            await self._dispatcher.transport.close()
            self._dispatcher = None

    async def run_once(
        self, day: date | None = None, *, trigger: str = TRIGGER_SCHEDULED
    ) -> DailyDispatchResult:
        """
        Run the pipeline for ``day`` (default: today in the configured offset).

        Always returns a result; failures are described in it rather than
        raised.
        """
        run_date = day or today(settings.TIMEZONE_OFFSET)
        started_at = datetime.now(UTC)

        if trigger == TRIGGER_SCHEDULED and not settings.CRON_JOBS_ENABLED:
            logger.info("Scheduled dispatch disabled, skipping", date=run_date.isoformat())
            return self._skipped(
                run_date, started_at, "cron_disabled", "Scheduled runs are disabled"
            )

        if self.is_running:
            logger.warning("Daily dispatch already running, skipping this run")
            return self._skipped(
                run_date, started_at, "already_running", "A dispatch run is already in progress"
            )

        self.is_running = True
        try:
            with structlog.contextvars.bound_contextvars(
                run_date=run_date.isoformat(), trigger=trigger
            ):
                try:
                    result = await self.run_daily_dispatch(run_date, started_at)
                except Exception as e:
                    error = DailyDispatchJobError(
                        f"Daily dispatch failed: {e}", operation="run_once", recoverable=False
                    )
                    logger.exception("Daily dispatch failed unexpectedly", error=str(e))
                    result = DailyDispatchResult(
                        success=False,
                        message=str(error),
                        date=run_date,
                        started_at=started_at,
                        finished_at=datetime.now(UTC),
                        reason="unexpected_error",
                    )

            self.last_run_time = result.finished_at
            self.last_result = result
            return result
        finally:
            self.is_running = False

    async def run_daily_dispatch(
        self, run_date: date, started_at: datetime | None = None
    ) -> DailyDispatchResult:
        """Resolve, select, attach and dispatch for ``run_date``."""
        started_at = started_at or datetime.now(UTC)
        logger.info("Starting daily dispatch")

        try:
            meeting = await asyncio.wait_for(
                self.resolver.resolve(run_date),
                timeout=settings.MEETING_RESOLUTION_TIMEOUT_SECONDS,
            )
        except TimeoutError:
            return self._failed(
                run_date,
                started_at,
                "meeting_resolution_timeout",
                f"Meeting resolution exceeded {settings.MEETING_RESOLUTION_TIMEOUT_SECONDS}s",
            )
        except (ExternalCalendarServiceError, DatabaseError) as e:
            return self._failed(
                run_date, started_at, "meeting_resolution_failed", f"Meeting unavailable: {e}"
            )

        try:
            accounts = await self.selector.select(run_date)
        except DatabaseError as e:
            return self._failed(
                run_date, started_at, "selection_failed", f"Could not load subscribers: {e}"
            )

        if not accounts:
            logger.info("No active subscriptions for date", meeting_id=meeting.id)
            return DailyDispatchResult(
                success=True,
                message="No active subscriptions for this date",
                date=run_date,
                started_at=started_at,
                finished_at=datetime.now(UTC),
                meeting=meeting,
                report=DispatchReport(),
            )

        try:
            await self.meeting_repository.attach_attendees(
                meeting.id, [account.account_id for account in accounts]
            )
        except DatabaseError as e:
            logger.warning(
                "Failed to record meeting attendees", meeting_id=meeting.id, error=str(e)
            )

        report = await self.dispatcher.dispatch(meeting, accounts)
        result = DailyDispatchResult(
            success=True,
            message=f"Sent {report.sent_count} of {report.total} invites",
            date=run_date,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            meeting=meeting,
            report=report,
        )
        logger.info(
            "Daily dispatch completed",
            meeting_id=meeting.id,
            sent=report.sent_count,
            failed=report.failed_count,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    def _failed(
        self, run_date: date, started_at: datetime, reason: str, message: str
    ) -> DailyDispatchResult:
        logger.error("Daily dispatch aborted", reason=reason, error=message)
        return DailyDispatchResult(
            success=False,
            message=message,
            date=run_date,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            reason=reason,
        )

    def _skipped(
        self, run_date: date, started_at: datetime, reason: str, message: str
    ) -> DailyDispatchResult:
        return DailyDispatchResult(
            success=False,
            message=message,
            date=run_date,
            started_at=started_at,
            finished_at=started_at,
            reason=reason,
        )

    def get_job_status(self) -> dict:
        return {
            "job_name": "daily_dispatch",
            "is_running": self.is_running,
            "cron_enabled": settings.CRON_JOBS_ENABLED,
            "run_time": settings.DISPATCH_RUN_TIME,
            "timezone_offset": settings.TIMEZONE_OFFSET,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }


# Singleton instance for application use
daily_dispatch_job = DailyDispatchJob()


async def run_daily_dispatch(day: date | None = None) -> DailyDispatchResult:
    """Run the pipeline on demand, regardless of the cron toggle."""
    return await daily_dispatch_job.run_once(day, trigger=TRIGGER_MANUAL)


async def run_daily_dispatch_once() -> None:
    """Single scheduled run, for an external cron invoking the worker."""
    result = await daily_dispatch_job.run_once(trigger=TRIGGER_SCHEDULED)
    logger.info("Daily dispatch run finished", **result.to_dict())


async def start_daily_dispatch_scheduler() -> None:
    """
    Sleep until the next DISPATCH_RUN_TIME in the configured offset, run,
    and repeat.
    """
    logger.info(
        "Starting daily dispatch scheduler",
        run_time=settings.DISPATCH_RUN_TIME,
        timezone_offset=settings.TIMEZONE_OFFSET,
    )

    while True:
        try:
            wake_at = next_run_at(settings.DISPATCH_RUN_TIME, settings.TIMEZONE_OFFSET)
            delay = (wake_at - datetime.now(UTC)).total_seconds()
            logger.info("Next daily dispatch scheduled", run_at=wake_at.isoformat())
            await asyncio.sleep(max(delay, 0))

            result = await daily_dispatch_job.run_once(trigger=TRIGGER_SCHEDULED)
            logger.info(
                "Daily dispatch cycle completed",
                success=result.success,
                reason=result.reason,
                message=result.message,
            )
        except asyncio.CancelledError:
            logger.info("Daily dispatch scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in daily dispatch scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(60)
