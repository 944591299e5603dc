# club_dispatch/models/api/subscription_request.py
"""
Subscription API request models.
Used by routes for input validation.
"""

from datetime import date

from pydantic import BaseModel, EmailStr, Field, model_validator

from club_dispatch.models.domain.subscription_domain import PlanType


class EligibilityRequest(BaseModel):
    """Eligibility check for one account or every member of a family order."""

    email: EmailStr | None = Field(None, description="Single account email")
    emails: list[EmailStr] | None = Field(None, description="All members of a family order")
    plan_type: PlanType | None = Field(None, description="Requested plan")
    start_date: date | None = Field(None, description="First day of the proposed window")
    end_date: date | None = Field(None, description="Exclusive end of the proposed window")

    @model_validator(mode="after")
    def _require_email(self):
        if not self.email and not self.emails:
            raise ValueError("Provide email or emails")
        return self

    def account_keys(self) -> list[str]:
        keys = list(self.emails or [])
        if self.email:
            keys.insert(0, self.email)
        return [str(k) for k in keys]


class AdminSubscriptionRequest(BaseModel):
    """Operator-created subscription."""

    email: EmailStr
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    plan_type: PlanType
    start_date: date
    end_date: date | None = Field(None, description="Exclusive end; optional for unlimited grants")
    order_id: str | None = Field(None, max_length=100)

    @model_validator(mode="after")
    def _require_end_date(self):
        if self.end_date is None and self.plan_type != "unlimited":
            raise ValueError("end_date is required unless plan_type is unlimited")
        return self
