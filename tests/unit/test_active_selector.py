from datetime import date

import pytest

from club_dispatch.config import settings
from club_dispatch.db.helpers import StoreUnavailable
from club_dispatch.services.active_selector import ActiveSubscriptionSelector

DAY = date(2025, 3, 10)


@pytest.mark.asyncio
async def test_selects_paid_subscriptions_covering_the_day(subscription_repo):
    subscription_repo.add_subscription("paid@example.com", date(2025, 3, 1), date(2025, 3, 31))
    subscription_repo.add_subscription(
        "legacy@example.com", date(2025, 3, 10), date(2025, 3, 10), payment_status=""
    )
    subscription_repo.add_subscription(
        "pending@example.com", date(2025, 3, 1), date(2025, 3, 31), payment_status="pending"
    )
    subscription_repo.add_subscription(
        "failed@example.com", date(2025, 3, 1), date(2025, 3, 31), payment_status="failed"
    )
    subscription_repo.add_subscription("ended@example.com", date(2025, 2, 1), date(2025, 3, 9))
    subscription_repo.add_subscription(
        "expired@example.com", date(2025, 3, 1), date(2025, 3, 31), status="expired"
    )

    selector = ActiveSubscriptionSelector(repository=subscription_repo)
    accounts = await selector.select(DAY)

    assert [a.email for a in accounts] == ["legacy@example.com", "paid@example.com"]


@pytest.mark.asyncio
async def test_one_entry_per_account_with_latest_end(subscription_repo):
    subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 10), date(2025, 3, 10), plan_type="daily"
    )
    monthly = subscription_repo.add_subscription(
        "member@example.com", date(2025, 3, 1), date(2025, 3, 31), plan_type="monthly"
    )

    accounts = await ActiveSubscriptionSelector(repository=subscription_repo).select(DAY)

    assert len(accounts) == 1
    assert accounts[0].subscription_id == monthly.id
    assert accounts[0].plan_type == "monthly"
    assert accounts[0].end_date == date(2025, 3, 31)


@pytest.mark.asyncio
async def test_accepted_payment_states_are_configurable(subscription_repo, monkeypatch):
    subscription_repo.add_subscription(
        "legacy@example.com", date(2025, 3, 1), date(2025, 3, 31), payment_status=""
    )
    monkeypatch.setattr(settings, "ACCEPTED_PAYMENT_STATES", ["completed"])

    default_selector = ActiveSubscriptionSelector(repository=subscription_repo)
    explicit = ActiveSubscriptionSelector(
        repository=subscription_repo, accepted_payment_states={"completed", ""}
    )

    assert await default_selector.select(DAY) == []
    assert [a.email for a in await explicit.select(DAY)] == ["legacy@example.com"]


@pytest.mark.asyncio
async def test_store_errors_propagate(subscription_repo):
    subscription_repo.unavailable = True

    with pytest.raises(StoreUnavailable):
        await ActiveSubscriptionSelector(repository=subscription_repo).select(DAY)
