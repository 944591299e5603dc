# club_dispatch/models/api/subscription_response.py
"""
Subscription API response models.
Used by routes for output formatting.
"""

from datetime import date

from pydantic import BaseModel, Field

from club_dispatch.models.domain.subscription_domain import Subscription


class SubscriptionSummary(BaseModel):
    id: str
    plan_type: str
    start_date: date
    end_date: date
    status: str

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionSummary":
        return cls(
            id=subscription.id,
            plan_type=subscription.plan_type,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            status=subscription.status,
        )


class EligibilityResponse(BaseModel):
    allowed: bool = Field(..., description="Whether every account may subscribe")
    message: str = Field(..., description="First blocking reason or a confirmation")
    conflicts: dict[str, SubscriptionSummary] = Field(
        default_factory=dict, description="Blocking subscription per blocked account"
    )
    reasons: dict[str, str] = Field(default_factory=dict, description="Reason per blocked account")


class SubscriptionCreatedResponse(BaseModel):
    email: str
    subscription: SubscriptionSummary
