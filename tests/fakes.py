"""In-memory fakes for repositories, link generation and invite transport."""

import asyncio
import itertools
from datetime import UTC, date, datetime, timedelta

from club_dispatch.db.helpers import ConflictError, StoreUnavailable
from club_dispatch.models.domain.meeting_domain import Meeting, MeetingDraft, MeetingLink
from club_dispatch.models.domain.subscription_domain import (
    Account,
    ActiveAccount,
    Subscription,
    normalize_email,
)
from club_dispatch.services.invite.transport import TransportError

_ids = itertools.count(1)


def make_subscription(
    account_id: str,
    start: date,
    end: date,
    *,
    plan_type: str = "monthly",
    status: str = "active",
    payment_status: str = "completed",
) -> Subscription:
    return Subscription(
        id=f"sub-{next(_ids)}",
        account_id=account_id,
        plan_type=plan_type,
        start_date=start,
        end_date=end,
        status=status,
        payment_status=payment_status,
    )


def make_meeting(day: date, *, is_default: bool = True, meeting_id: str | None = None) -> Meeting:
    start = datetime(day.year, day.month, day.day, 15, 30, tzinfo=UTC)
    return Meeting(
        id=meeting_id or f"meeting-{next(_ids)}",
        meeting_date=day,
        platform="google-meet",
        start_time=start,
        end_time=start + timedelta(hours=1),
        meeting_link="https://meet.google.com/abc-defg-hij",
        title="Club Daily Session",
        is_default=is_default,
        created_by="system" if is_default else "admin",
        created_at=datetime.now(UTC),
    )


def make_active_account(email: str) -> ActiveAccount:
    return ActiveAccount(account_id=f"acct-{email}", email=email, first_name="Test")


class FakeSubscriptionRepository:
    """In-memory stand-in for SubscriptionRepository."""

    def __init__(self):
        self.accounts: dict[str, Account] = {}
        self.subscriptions: list[Subscription] = []
        self.unavailable = False
        self.lookups: list[str] = []

    def add_account(self, email: str, first_name: str = "", last_name: str = "") -> Account:
        key = normalize_email(email)
        account = self.accounts.get(key)
        if account is None:
            account = Account(
                id=f"acct-{key}", email=key, first_name=first_name, last_name=last_name
            )
            self.accounts[key] = account
        return account

    def add_subscription(self, email: str, start: date, end: date, **kwargs) -> Subscription:
        account = self.add_account(email)
        subscription = make_subscription(account.id, start, end, **kwargs)
        self.subscriptions.append(subscription)
        return subscription

    async def find_for_account(self, email: str) -> list[Subscription]:
        if self.unavailable:
            raise StoreUnavailable("connection refused", operation="fetch_all")
        self.lookups.append(email)
        account = self.accounts.get(normalize_email(email))
        if account is None:
            return []
        return [
            s
            for s in self.subscriptions
            if s.account_id == account.id and s.status != "cancelled"
        ]

    async def find_active_on_date(self, day: date) -> list[tuple[Account, Subscription]]:
        if self.unavailable:
            raise StoreUnavailable("connection refused", operation="fetch_all")
        by_id = {a.id: a for a in self.accounts.values()}
        return [
            (by_id[s.account_id], s)
            for s in self.subscriptions
            if s.status == "active" and s.start_date <= day <= s.end_date
        ]


class FakeMeetingRepository:
    """In-memory stand-in for MeetingRepository with the one-default-per-day rule."""

    def __init__(self):
        self.meetings: list[Meeting] = []
        self.attendees: dict[str, set[str]] = {}
        self.create_calls = 0
        self.competitor: Meeting | None = None
        self.create_error: Exception | None = None
        self.unavailable = False

    async def find_for_date(self, day: date) -> Meeting | None:
        if self.unavailable:
            raise StoreUnavailable("connection refused", operation="fetch_one")
        matches = [m for m in self.meetings if m.meeting_date == day]
        if not matches:
            return None
        return sorted(matches, key=lambda m: (m.is_default, m.created_at))[0]

    async def create(self, draft: MeetingDraft) -> Meeting:
        self.create_calls += 1
        await asyncio.sleep(0)
        if self.create_error is not None:
            raise self.create_error
        if self.competitor is not None:
            # another process commits first
            self.meetings.append(self.competitor)
            self.competitor = None

        if draft.is_default and any(
            m.meeting_date == draft.meeting_date and m.is_default for m in self.meetings
        ):
            raise ConflictError("duplicate default meeting", operation="fetch_one")

        meeting = Meeting(
            id=f"meeting-{next(_ids)}",
            meeting_date=draft.meeting_date,
            platform=draft.platform,
            start_time=draft.start_time,
            end_time=draft.end_time,
            meeting_link=draft.meeting_link,
            title=draft.title,
            description=draft.description,
            is_default=draft.is_default,
            created_by=draft.created_by,
            google_event_id=draft.google_event_id,
            zoom_meeting_id=draft.zoom_meeting_id,
            zoom_start_url=draft.zoom_start_url,
            created_at=datetime.now(UTC),
        )
        self.meetings.append(meeting)
        return meeting

    async def attach_attendees(self, meeting_id: str, account_ids: list[str]) -> int:
        current = self.attendees.setdefault(meeting_id, set())
        added = len(set(account_ids) - current)
        current.update(account_ids)
        return added

    async def list_attendee_ids(self, meeting_id: str) -> list[str]:
        return sorted(self.attendees.get(meeting_id, set()))


class FakeLinkService:
    def __init__(self, *, error: Exception | None = None, delay: float = 0):
        self.error = error
        self.delay = delay
        self.created: list[MeetingDraft] = []
        self.attendees: list[list[str]] = []
        self.cancelled: list[str | None] = []

    async def create_link(self, draft: MeetingDraft, attendees: list[str] | None = None):
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.created.append(draft)
        self.attendees.append(list(attendees or []))
        n = len(self.created)
        return MeetingLink(
            url=f"https://meet.google.com/aaa-bbbb-{n:03d}", google_event_id=f"evt-{n}"
        )

    async def cancel(self, item) -> bool:
        self.cancelled.append(item.google_event_id)
        return True


class FakeTransport:
    def __init__(self, *, failing: set[str] | None = None, slow: set[str] | None = None):
        self.failing = failing or set()
        self.slow = slow or set()
        self.sent: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_invite(self, recipient: ActiveAccount, meeting: Meeting) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if recipient.email in self.slow:
                await asyncio.sleep(10)
            if recipient.email in self.failing:
                raise TransportError("mailbox unavailable", recipient=recipient.email)
            self.sent.append(recipient.email)
        finally:
            self.in_flight -= 1

