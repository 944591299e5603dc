# club_dispatch/services/invite/dispatcher.py
"""
Concurrent invite fan-out.

Each recipient gets one send, bounded by a semaphore and a per-send
timeout. A failure for one recipient is recorded and never affects the
others.
"""

import asyncio
import time

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.dispatch_domain import DispatchReport, InviteAttempt
from club_dispatch.models.domain.meeting_domain import Meeting
from club_dispatch.models.domain.subscription_domain import ActiveAccount
from club_dispatch.services.invite.transport import InviteTransport

logger = get_logger(__name__)


class InviteDispatcher:
    def __init__(
        self,
        transport: InviteTransport,
        max_concurrency: int | None = None,
        send_timeout: float | None = None,
    ):
        self.transport = transport
        self.max_concurrency = max_concurrency or settings.MAX_CONCURRENT_INVITES
        self.send_timeout = send_timeout or settings.INVITE_SEND_TIMEOUT_SECONDS

    async def dispatch(self, meeting: Meeting, accounts: list[ActiveAccount]) -> DispatchReport:
        """
        Send ``meeting`` to every account and report per-recipient outcomes.

        Never raises for a single recipient's failure.
        """
        started = time.perf_counter()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        logger.info(
            "Dispatching invites",
            meeting_id=meeting.id,
            recipients=len(accounts),
            max_concurrency=self.max_concurrency,
        )

        attempts = await asyncio.gather(
            *(self._send_one(semaphore, meeting, account) for account in accounts)
        )

        report = DispatchReport(
            sent=[a for a in attempts if a.status == "sent"],
            failed=[a for a in attempts if a.status == "failed"],
            duration_ms=(time.perf_counter() - started) * 1000,
        )

        logger.info(
            "Invites dispatched",
            meeting_id=meeting.id,
            sent=report.sent_count,
            failed=report.failed_count,
            success_rate=round(report.success_rate, 4),
            duration_ms=round(report.duration_ms, 2),
        )
        return report

    async def _send_one(
        self, semaphore: asyncio.Semaphore, meeting: Meeting, account: ActiveAccount
    ) -> InviteAttempt:
        async with semaphore:
            try:
                await asyncio.wait_for(
                    self.transport.send_invite(account, meeting), timeout=self.send_timeout
                )
            except TimeoutError:
                error = f"Timed out after {self.send_timeout}s"
            except Exception as e:
                error = str(e) or type(e).__name__
            else:
                return InviteAttempt(
                    account_id=account.account_id,
                    email=account.email,
                    meeting_id=meeting.id,
                    status="sent",
                )

        logger.warning("Invite failed", email=account.email, meeting_id=meeting.id, error=error)
        return InviteAttempt(
            account_id=account.account_id,
            email=account.email,
            meeting_id=meeting.id,
            status="failed",
            error=error,
        )
