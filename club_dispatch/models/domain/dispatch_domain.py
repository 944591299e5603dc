# club_dispatch/models/domain/dispatch_domain.py
"""
Dispatch run domain models.

InviteAttempt records one send, DispatchReport aggregates a fan-out and
DailyDispatchResult is what a pipeline run hands back to its trigger.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, Literal

from club_dispatch.models.domain.meeting_domain import Meeting

InviteStatus = Literal["sent", "failed"]


@dataclass(slots=True)
class InviteAttempt:
    account_id: str
    email: str
    meeting_id: str
    status: InviteStatus
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "email": self.email,
            "meeting_id": self.meeting_id,
            "status": self.status,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True)
class DispatchReport:
    sent: list[InviteAttempt] = field(default_factory=list)
    failed: list[InviteAttempt] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def sent_count(self) -> int:
        return len(self.sent)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.sent_count + self.failed_count

    @property
    def success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.sent_count / self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent_count": self.sent_count,
            "failed_count": self.failed_count,
            "total": self.total,
            "success_rate": round(self.success_rate, 4),
            "duration_ms": round(self.duration_ms, 2),
            "sent": [attempt.email for attempt in self.sent],
            "failed": [
                {"email": attempt.email, "error": attempt.error} for attempt in self.failed
            ],
        }


@dataclass(slots=True)
class DailyDispatchResult:
    success: bool
    message: str
    date: date
    started_at: datetime
    finished_at: datetime
    meeting: Meeting | None = None
    report: DispatchReport | None = None
    reason: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "date": self.date.isoformat(),
            "reason": self.reason,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "meeting": (
                {
                    "id": self.meeting.id,
                    "platform": self.meeting.platform,
                    "meeting_link": self.meeting.meeting_link,
                    "start_time": self.meeting.start_time.isoformat(),
                    "end_time": self.meeting.end_time.isoformat(),
                    "is_default": self.meeting.is_default,
                }
                if self.meeting
                else None
            ),
            "report": self.report.to_dict() if self.report else None,
        }
