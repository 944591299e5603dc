# club_dispatch/models/domain/subscription_domain.py
"""
Subscription domain models.

Plain dataclasses shared by the subscription repository, the eligibility
checker and the active-subscription selector.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

PlanType = Literal["daily", "monthly", "family", "unlimited"]
SubscriptionStatus = Literal["active", "expired", "pending", "cancelled"]

PLAN_TYPES: tuple[str, ...] = ("daily", "monthly", "family", "unlimited")


def normalize_email(email: str) -> str:
    """Account key form: trimmed and lower-cased."""
    return email.strip().lower()


def windows_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open overlap of [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and b_start < a_end


@dataclass(slots=True)
class Account:
    """A subscriber identified by email."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""


@dataclass(slots=True)
class Subscription:
    """A subscriptions row. Dates are inclusive calendar dates."""

    id: str
    account_id: str
    plan_type: str
    start_date: date
    end_date: date
    status: str
    payment_status: str = ""
    order_id: str | None = None
    created_at: datetime | None = None

    def covers(self, day: date) -> bool:
        """True when ``day`` falls inside [start_date, end_date]."""
        return self.start_date <= day <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        """Half-open overlap test against [start, end)."""
        return windows_overlap(self.start_date, self.end_date, start, end)


@dataclass(slots=True)
class ActiveAccount:
    """An account with a paid subscription covering the dispatch day."""

    account_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    subscription_id: str | None = None
    plan_type: str | None = None
    end_date: date | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class EligibilityResult:
    """Outcome of an eligibility check for one or more accounts."""

    allowed: bool
    conflicts: dict[str, Subscription] = field(default_factory=dict)
    reasons: dict[str, str] = field(default_factory=dict)

    @property
    def message(self) -> str | None:
        """First blocking reason, for single-account callers."""
        return next(iter(self.reasons.values()), None)
