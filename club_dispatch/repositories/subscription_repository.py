# club_dispatch/repositories/subscription_repository.py
"""
Persistence layer for accounts and subscriptions.

Read paths feed the eligibility checker and the daily selector; the insert
path relies on the subscriptions_no_overlap exclusion constraint to reject
overlapping windows that slipped past an earlier eligibility check.
"""

from datetime import date

from club_dispatch.db.helpers import ConflictError, fetch_all, fetch_one, with_db_retry
from club_dispatch.db.pool import get_db_transaction
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.domain.subscription_domain import (
    Account,
    Subscription,
    normalize_email,
)

logger = get_logger(__name__)


class SubscriptionRepository:
    """Queries over the accounts and subscriptions tables."""

    SUBSCRIPTION_COLUMNS = """
        s.id, s.account_id, s.order_id, s.plan_type, s.start_date, s.end_date,
        s.status, s.payment_status, s.created_at
    """

    @classmethod
    def _row_to_subscription(cls, row: dict) -> Subscription:
        return Subscription(
            id=str(row["id"]),
            account_id=str(row["account_id"]),
            plan_type=row["plan_type"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            status=row["status"],
            payment_status=row.get("payment_status") or "",
            order_id=row.get("order_id"),
            created_at=row.get("created_at"),
        )

    @classmethod
    @with_db_retry()
    async def find_for_account(cls, email: str) -> list[Subscription]:
        """All non-cancelled subscriptions held by the account, oldest first."""
        query = f"""
            SELECT {cls.SUBSCRIPTION_COLUMNS}
            FROM subscriptions s
            JOIN accounts a ON a.id = s.account_id
            WHERE a.email = %s
              AND s.status <> 'cancelled'
            ORDER BY s.start_date, s.created_at
        """
        rows = await fetch_all(query, (normalize_email(email),))
        return [cls._row_to_subscription(row) for row in rows]

    @classmethod
    @with_db_retry()
    async def find_active_on_date(cls, day: date) -> list[tuple[Account, Subscription]]:
        """
        Active subscriptions covering ``day`` (start <= day <= end), joined to
        their account. Payment state is not filtered here.
        """
        query = f"""
            SELECT {cls.SUBSCRIPTION_COLUMNS},
                   a.email, a.first_name, a.last_name
            FROM subscriptions s
            JOIN accounts a ON a.id = s.account_id
            WHERE s.status = 'active'
              AND s.start_date <= %s
              AND s.end_date >= %s
            ORDER BY a.email, s.end_date DESC
        """
        rows = await fetch_all(query, (day, day))
        return [
            (
                Account(
                    id=str(row["account_id"]),
                    email=row["email"],
                    first_name=row.get("first_name") or "",
                    last_name=row.get("last_name") or "",
                ),
                cls._row_to_subscription(row),
            )
            for row in rows
        ]

    @classmethod
    async def create_subscription(
        cls,
        email: str,
        plan_type: str,
        start_date: date,
        end_date: date,
        *,
        status: str = "active",
        payment_status: str = "",
        order_id: str | None = None,
        first_name: str = "",
        last_name: str = "",
    ) -> Subscription:
        """
        Upsert the account and insert one subscription in a single transaction.

        Raises:
            ConflictError: the window overlaps a live subscription of the account
        """
        key = normalize_email(email)

        async with get_db_transaction() as conn:
            account_row = await fetch_one(
                """
                INSERT INTO accounts (email, first_name, last_name)
                VALUES (%s, %s, %s)
                ON CONFLICT (email) DO UPDATE
                SET first_name = COALESCE(NULLIF(EXCLUDED.first_name, ''), accounts.first_name),
                    last_name = COALESCE(NULLIF(EXCLUDED.last_name, ''), accounts.last_name)
                RETURNING id
                """,
                (key, first_name, last_name),
                connection=conn,
            )

            try:
                row = await fetch_one(
                    """
                    INSERT INTO subscriptions (
                        account_id, order_id, plan_type, start_date, end_date,
                        status, payment_status
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING id, account_id, order_id, plan_type, start_date, end_date,
                              status, payment_status, created_at
                    """,
                    (
                        account_row["id"],
                        order_id,
                        plan_type,
                        start_date,
                        end_date,
                        status,
                        payment_status,
                    ),
                    connection=conn,
                )
            except ConflictError:
                logger.warning(
                    "Subscription rejected by overlap constraint",
                    email=key,
                    start_date=start_date.isoformat(),
                    end_date=end_date.isoformat(),
                )
                raise

        subscription = cls._row_to_subscription(row)
        logger.info(
            "Subscription created",
            email=key,
            subscription_id=subscription.id,
            plan_type=plan_type,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        return subscription
