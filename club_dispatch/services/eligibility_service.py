# club_dispatch/services/eligibility_service.py
"""
Subscription eligibility checks.

Decides whether one account, or every member of a family order, may start
a subscription. With a proposed window the test is a half-open overlap
against each live subscription; without one the question is whether any
subscription covers today.
"""

from collections.abc import Iterable
from datetime import date

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.subscription_domain import (
    EligibilityResult,
    Subscription,
    normalize_email,
)
from club_dispatch.repositories.subscription_repository import SubscriptionRepository
from club_dispatch.services.scheduling.time_window import format_short_date
from club_dispatch.services.scheduling.time_window import today as civil_today

logger = get_logger(__name__)


class InvalidRange(ValueError):
    """The proposed subscription window is malformed."""


def _span(start: date, end: date) -> str:
    first, last = format_short_date(start), format_short_date(end)
    return first if first == last else f"{first} to {last}"


def _pick_conflict(conflicts: list[Subscription], plan_type: str | None) -> Subscription:
    """Choose the subscription reported to the caller."""
    by_plan = {}
    for sub in sorted(conflicts, key=lambda s: s.start_date):
        by_plan.setdefault(sub.plan_type, sub)

    if plan_type == "monthly" and "daily" in by_plan:
        return by_plan["daily"]
    if plan_type == "daily" and "monthly" in by_plan:
        return by_plan["monthly"]
    if plan_type == "daily" and "daily" in by_plan:
        return by_plan["daily"]
    return min(conflicts, key=lambda s: s.start_date)


def _window_reason(
    existing: Subscription, plan_type: str | None, start: date, end: date
) -> str:
    if plan_type == "monthly" and existing.plan_type == "daily":
        return (
            "Cannot purchase a monthly plan that overlaps with your existing daily plan "
            f"from {_span(existing.start_date, existing.end_date)}. "
            "Please select non-overlapping dates."
        )
    if plan_type == "daily" and existing.plan_type == "monthly":
        return (
            "Cannot purchase a daily plan that overlaps with your existing monthly plan "
            f"from {format_short_date(existing.start_date)} to "
            f"{format_short_date(existing.end_date)}. "
            "Please select a date outside your monthly plan."
        )
    if plan_type == "daily" and existing.plan_type == "daily":
        return (
            f"Cannot book daily plan for {format_short_date(start)} because you already "
            f"have a booking for {_span(existing.start_date, existing.end_date)}. "
            "Please select a different date."
        )
    return (
        f"Cannot book for {_span(start, end)} because you already have a subscription "
        f"from {format_short_date(existing.start_date)} to "
        f"{format_short_date(existing.end_date)}. Please select non-overlapping dates."
    )


def _active_reason(existing: Subscription) -> str:
    until = format_short_date(existing.end_date)
    if existing.plan_type in ("monthly", "daily"):
        return (
            f"You already have an active {existing.plan_type} subscription until {until}. "
            "Please wait for it to expire or check non-overlapping dates."
        )
    return f"You already have an active subscription until {until}"


def validate_window(
    start: date | None, end: date | None, plan_type: str | None = None
) -> None:
    """
    Raises:
        InvalidRange: only one bound given, start not before end, or a
            non-unlimited window longer than MAX_SUBSCRIPTION_DAYS
    """
    if start is None and end is None:
        return
    if start is None or end is None:
        raise InvalidRange("Both start date and end date are required for a date range")
    if start >= end:
        raise InvalidRange("Invalid date range: start date must be before end date")
    if plan_type != "unlimited" and (end - start).days > settings.MAX_SUBSCRIPTION_DAYS:
        raise InvalidRange(
            f"Subscription cannot exceed {settings.MAX_SUBSCRIPTION_DAYS} days"
        )


class EligibilityService:
    """Read-only eligibility checks against the subscription store."""

    def __init__(self, repository=SubscriptionRepository):
        self.repository = repository

    async def check_eligibility(
        self,
        account_keys: Iterable[str],
        plan_type: str | None = None,
        proposed_start: date | None = None,
        proposed_end: date | None = None,
        *,
        today: date | None = None,
    ) -> EligibilityResult:
        """
        Check whether every account may start the proposed subscription.

        Args:
            account_keys: one email, or all members of a family order
            plan_type: requested plan, used to pick the conflict message
            proposed_start: first day of the window
            proposed_end: exclusive end of the window
            today: civil day for the no-window case; defaults to the
                configured offset's current date

        Returns:
            EligibilityResult; ``conflicts`` and ``reasons`` only hold
            blocked accounts

        Raises:
            ValueError: no account keys
            InvalidRange: malformed window
            StoreUnavailable: store lookups failed
        """
        if isinstance(account_keys, str):
            account_keys = [account_keys]
        keys = list(dict.fromkeys(normalize_email(k) for k in account_keys if k and k.strip()))
        if not keys:
            raise ValueError("At least one account email is required")

        validate_window(proposed_start, proposed_end, plan_type)
        has_window = proposed_start is not None
        day = today or civil_today(settings.TIMEZONE_OFFSET)

        result = EligibilityResult(allowed=True)
        for key in keys:
            subscriptions = await self.repository.find_for_account(key)

            if has_window:
                blocking = [
                    s
                    for s in subscriptions
                    if s.overlaps(proposed_start, proposed_end)
                ]
            else:
                blocking = [s for s in subscriptions if s.covers(day)]

            if not blocking:
                continue

            if has_window:
                conflict = _pick_conflict(blocking, plan_type)
                reason = _window_reason(conflict, plan_type, proposed_start, proposed_end)
            else:
                conflict = max(blocking, key=lambda s: s.end_date)
                reason = _active_reason(conflict)

            result.allowed = False
            result.conflicts[key] = conflict
            result.reasons[key] = reason

        logger.info(
            "Eligibility checked",
            accounts=len(keys),
            plan_type=plan_type,
            allowed=result.allowed,
            blocked=list(result.conflicts),
        )
        return result


eligibility_service = EligibilityService()


async def check_eligibility(
    account_keys: Iterable[str],
    plan_type: str | None = None,
    proposed_start: date | None = None,
    proposed_end: date | None = None,
    *,
    today: date | None = None,
) -> EligibilityResult:
    return await eligibility_service.check_eligibility(
        account_keys, plan_type, proposed_start, proposed_end, today=today
    )
