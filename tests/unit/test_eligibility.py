"""Eligibility checks for single accounts and family orders."""

from datetime import date, timedelta

import pytest

from club_dispatch.db.helpers import StoreUnavailable
from club_dispatch.models.domain.subscription_domain import windows_overlap
from club_dispatch.services.eligibility_service import (
    EligibilityService,
    InvalidRange,
    validate_window,
)

TODAY = date(2025, 3, 10)


@pytest.fixture
def service(subscription_repo):
    return EligibilityService(repository=subscription_repo)


def test_windows_overlap_is_half_open_and_symmetric():
    a = (date(2025, 3, 1), date(2025, 3, 10))
    b = (date(2025, 3, 9), date(2025, 3, 12))
    adjacent = (date(2025, 3, 10), date(2025, 3, 20))

    assert windows_overlap(*a, *b) and windows_overlap(*b, *a)
    assert not windows_overlap(*a, *adjacent)
    assert not windows_overlap(*adjacent, *a)
    assert windows_overlap(*a, *a) and windows_overlap(*adjacent, *adjacent)


@pytest.mark.asyncio
async def test_new_account_is_allowed(service):
    result = await service.check_eligibility(
        "new@example.com", "monthly", date(2025, 4, 1), date(2025, 5, 1), today=TODAY
    )

    assert result.allowed is True
    assert result.conflicts == {}
    assert result.message is None


@pytest.mark.asyncio
async def test_overlapping_window_is_blocked(service, subscription_repo):
    existing = subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 1), date(2025, 3, 31)
    )

    result = await service.check_eligibility(
        ["Member@Example.com "], "monthly", date(2025, 3, 20), date(2025, 4, 20), today=TODAY
    )

    assert result.allowed is False
    assert result.conflicts == {"member@example.com": existing}
    assert "01/03/25 to 31/03/25" in result.reasons["member@example.com"]


@pytest.mark.asyncio
async def test_window_starting_at_existing_end_is_allowed(service, subscription_repo):
    subscription_repo.add_subscription("member@example.com", date(2025, 3, 1), date(2025, 3, 31))

    result = await service.check_eligibility(
        "member@example.com", "monthly", date(2025, 3, 31), date(2025, 4, 30), today=TODAY
    )

    assert result.allowed is True


@pytest.mark.asyncio
async def test_cancelled_subscriptions_do_not_block(service, subscription_repo):
    subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 1), date(2025, 3, 31), status="cancelled"
    )

    result = await service.check_eligibility(
        "member@example.com", "monthly", date(2025, 3, 5), date(2025, 4, 5), today=TODAY
    )

    assert result.allowed is True


@pytest.mark.asyncio
async def test_family_order_is_all_or_nothing(service, subscription_repo):
    subscription_repo.add_subscription("parent@example.com", date(2025, 3, 1), date(2025, 3, 31))

    result = await service.check_eligibility(
        ["parent@example.com", "child@example.com"],
        "family",
        date(2025, 3, 15),
        date(2025, 4, 15),
        today=TODAY,
    )

    assert result.allowed is False
    assert list(result.conflicts) == ["parent@example.com"]
    assert "child@example.com" not in result.reasons


@pytest.mark.asyncio
async def test_duplicate_keys_are_checked_once(service, subscription_repo):
    await service.check_eligibility(
        ["a@example.com", "A@example.com", "b@example.com"], today=TODAY
    )

    assert subscription_repo.lookups == ["a@example.com", "b@example.com"]


@pytest.mark.asyncio
async def test_daily_over_monthly_message(service, subscription_repo):
    subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 1), date(2025, 3, 31), plan_type="monthly"
    )

    result = await service.check_eligibility(
        "member@example.com", "daily", date(2025, 3, 12), date(2025, 3, 13), today=TODAY
    )

    assert result.message.startswith("Cannot purchase a daily plan that overlaps")
    assert "outside your monthly plan" in result.message


@pytest.mark.asyncio
async def test_monthly_over_daily_reports_the_daily_booking(service, subscription_repo):
    subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 1), date(2025, 3, 31), plan_type="monthly"
    )
    daily = subscription_repo.add_subscription(
        "member@example.com", date(2025, 4, 2), date(2025, 4, 2), plan_type="daily"
    )

    result = await service.check_eligibility(
        "member@example.com", "monthly", date(2025, 3, 20), date(2025, 4, 20), today=TODAY
    )

    assert result.conflicts["member@example.com"] is daily
    assert "existing daily plan from 02/04/25." in result.message


@pytest.mark.asyncio
async def test_without_window_checks_coverage_of_today(service, subscription_repo):
    subscription_repo.add_subscription(
        "current@example.com", date(2025, 3, 1), date(2025, 3, 10), plan_type="monthly"
    )
    subscription_repo.add_subscription("past@example.com", date(2025, 2, 1), date(2025, 3, 9))

    current = await service.check_eligibility("current@example.com", today=TODAY)
    past = await service.check_eligibility("past@example.com", today=TODAY)

    assert current.allowed is False
    assert current.message == (
        "You already have an active monthly subscription until 10/03/25. "
        "Please wait for it to expire or check non-overlapping dates."
    )
    assert past.allowed is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start, end",
    [
        (date(2025, 4, 1), None),
        (None, date(2025, 4, 1)),
        (date(2025, 4, 1), date(2025, 4, 1)),
        (date(2025, 4, 2), date(2025, 4, 1)),
        (date(2025, 1, 1), date(2026, 6, 1)),
    ],
)
async def test_invalid_ranges_are_rejected(service, start, end):
    with pytest.raises(InvalidRange):
        await service.check_eligibility("member@example.com", "monthly", start, end, today=TODAY)


def test_unlimited_windows_skip_the_length_cap():
    start = date(2025, 3, 10)
    end = start + timedelta(days=36500)

    validate_window(start, end, "unlimited")
    with pytest.raises(InvalidRange):
        validate_window(start, end, "monthly")


@pytest.mark.asyncio
async def test_empty_key_list_is_rejected(service):
    with pytest.raises(ValueError):
        await service.check_eligibility(["  "], today=TODAY)


@pytest.mark.asyncio
async def test_store_errors_propagate(service, subscription_repo):
    subscription_repo.unavailable = True

    with pytest.raises(StoreUnavailable):
        await service.check_eligibility("member@example.com", today=TODAY)
