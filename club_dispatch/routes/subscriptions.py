"""
Subscription API Routes
Eligibility checks at signup and operator-created subscriptions.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status

from club_dispatch.auth.verify import admin_dependency
from club_dispatch.config import settings
from club_dispatch.db.helpers import ConflictError, StoreUnavailable
from club_dispatch.infrastructure.observability.logging import get_logger
from club_dispatch.models.api.subscription_request import (
    AdminSubscriptionRequest,
    EligibilityRequest,
)
from club_dispatch.models.api.subscription_response import (
    EligibilityResponse,
    SubscriptionCreatedResponse,
    SubscriptionSummary,
)
from club_dispatch.repositories.subscription_repository import SubscriptionRepository
from club_dispatch.services.eligibility_service import InvalidRange, eligibility_service
from club_dispatch.services.scheduling.time_window import today

logger = get_logger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])
admin_router = APIRouter(prefix="/admin/subscriptions", tags=["admin"])

AVAILABLE_MESSAGE = "Available for Subscription"


@router.post("/eligibility", response_model=EligibilityResponse)
async def check_subscription_eligibility(request: EligibilityRequest):
    """Check whether the account(s) may start the proposed subscription."""
    current_day = today(settings.TIMEZONE_OFFSET)
    if request.start_date and request.start_date < current_day:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Start date cannot be in the past",
        )

    try:
        result = await eligibility_service.check_eligibility(
            request.account_keys(),
            request.plan_type,
            request.start_date,
            request.end_date,
            today=current_day,
        )
    except InvalidRange as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except StoreUnavailable as e:
        logger.error("Eligibility check failed, store unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Subscription store unavailable, please retry",
        ) from e

    return EligibilityResponse(
        allowed=result.allowed,
        message=result.message or AVAILABLE_MESSAGE,
        conflicts={
            key: SubscriptionSummary.from_domain(sub) for key, sub in result.conflicts.items()
        },
        reasons=result.reasons,
    )


@admin_router.post(
    "",
    response_model=SubscriptionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_admin_subscription(
    request: AdminSubscriptionRequest, claims: dict = Depends(admin_dependency)
):
    """
    Create an active subscription on behalf of a subscriber.

    An unlimited grant without an end date runs for UNLIMITED_GRANT_DAYS.
    """
    end_date = request.end_date or request.start_date + timedelta(
        days=settings.UNLIMITED_GRANT_DAYS
    )
    try:
        result = await eligibility_service.check_eligibility(
            [request.email], request.plan_type, request.start_date, end_date
        )
        if not result.allowed:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.message)

        subscription = await SubscriptionRepository.create_subscription(
            request.email,
            request.plan_type,
            request.start_date,
            end_date,
            status="active",
            payment_status="admin-created",
            order_id=request.order_id,
            first_name=request.first_name,
            last_name=request.last_name,
        )
    except InvalidRange as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Account is no longer eligible for this window",
        ) from e
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Subscription store unavailable, please retry",
        ) from e

    logger.info(
        "Admin subscription created",
        admin=claims.get("sub"),
        email=request.email,
        subscription_id=subscription.id,
    )
    return SubscriptionCreatedResponse(
        email=str(request.email).strip().lower(),
        subscription=SubscriptionSummary.from_domain(subscription),
    )
