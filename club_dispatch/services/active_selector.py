# club_dispatch/services/active_selector.py
"""Accounts holding an active, paid subscription on a given day."""

from datetime import date

from club_dispatch.config import settings
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.subscription_domain import ActiveAccount
from club_dispatch.repositories.subscription_repository import SubscriptionRepository

logger = get_logger(__name__)


class ActiveSubscriptionSelector:
    def __init__(self, repository=SubscriptionRepository, accepted_payment_states=None):
        self.repository = repository
        self._accepted = (
            frozenset(accepted_payment_states) if accepted_payment_states is not None else None
        )

    @property
    def accepted_payment_states(self) -> frozenset[str]:
        return self._accepted if self._accepted is not None else settings.accepted_payment_states()

    async def select(self, day: date) -> list[ActiveAccount]:
        """
        One entry per account whose active subscription covers ``day`` and
        whose payment state is accepted. The latest-ending subscription
        represents the account.
        """
        accepted = self.accepted_payment_states
        candidates = await self.repository.find_active_on_date(day)

        selected: dict[str, ActiveAccount] = {}
        rejected_payment = 0
        for account, subscription in candidates:
            if subscription.status != "active" or not subscription.covers(day):
                continue
            if subscription.payment_status not in accepted:
                rejected_payment += 1
                continue

            current = selected.get(account.id)
            if current and current.end_date >= subscription.end_date:
                continue
            selected[account.id] = ActiveAccount(
                account_id=account.id,
                email=account.email,
                first_name=account.first_name,
                last_name=account.last_name,
                subscription_id=subscription.id,
                plan_type=subscription.plan_type,
                end_date=subscription.end_date,
            )

        accounts = sorted(selected.values(), key=lambda a: a.email)
        logger.info(
            "Active accounts selected",
            date=day.isoformat(),
            candidates=len(candidates),
            rejected_payment=rejected_payment,
            selected=len(accounts),
        )
        return accounts


active_subscription_selector = ActiveSubscriptionSelector()
