"""
Billing API routes.

Protected endpoints for subscription and quota management. The account
comes from the upstream auth middleware.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from packages.auth.dependencies import get_current_account
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount
from packages.billing.dependencies import get_quota_service, get_subscription_service
from packages.billing.models.domain.enums import QuotaAction
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.quota_service import QuotaService
from packages.billing.models.schemas.billing import (
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    CurrentPlanResponse,
    PlanResponse,
    PortalSessionRequest,
    PortalSessionResponse,
    QuotaCheckResponse,
    QuotaStatusResponse,
    SubscriptionActionResponse,
    SubscriptionResponse,
)

router = APIRouter()


# ============================================================================
# Subscription
# ============================================================================


@router.get("/current", response_model=CurrentPlanResponse)
async def get_current_plan(
    current_account: AuthenticatedAccount = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Get the account's effective plan.

    Accounts that never subscribed are on the free plan with no subscription.
    """
    plan, subscription = await subscription_service.get_current_plan(
        current_account.account_id
    )
    return CurrentPlanResponse(
        plan=PlanResponse.from_plan(plan),
        subscription=(
            SubscriptionResponse.from_subscription(subscription)
            if subscription
            else None
        ),
    )


@router.post("/subscriptions", response_model=CreateSubscriptionResponse)
async def create_subscription(
    request: CreateSubscriptionRequest,
    current_account: AuthenticatedAccount = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Subscribe to a plan.

    For paid plans a client_secret is returned when the first payment must be
    confirmed client-side. Returns 409 while a paid subscription is live.
    """
    result = await subscription_service.create_subscription(
        account_id=current_account.account_id,
        plan_id=request.plan_id,
        payment_method_id=request.payment_method_id,
    )
    return CreateSubscriptionResponse(
        plan_id=result.plan_id,
        status=result.status,
        external_subscription_id=result.external_subscription_id,
        client_secret=result.client_secret,
    )


@router.post("/cancel", response_model=SubscriptionActionResponse)
async def cancel_subscription(
    current_account: AuthenticatedAccount = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel at the end of the current billing period."""
    subscription = await subscription_service.cancel_subscription(
        current_account.account_id
    )
    return SubscriptionActionResponse(
        success=True,
        message=(
            "Subscription will be canceled at the end of the billing period "
            f"({subscription.current_period_end.date().isoformat()})"
        ),
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


@router.post("/reactivate", response_model=SubscriptionActionResponse)
async def reactivate_subscription(
    current_account: AuthenticatedAccount = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Undo a scheduled cancellation."""
    subscription = await subscription_service.reactivate_subscription(
        current_account.account_id
    )
    return SubscriptionActionResponse(
        success=True,
        message="Subscription reactivated",
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


# ============================================================================
# Billing Portal
# ============================================================================


@router.post("/portal", response_model=PortalSessionResponse)
async def create_portal_session(
    request: Optional[PortalSessionRequest] = None,
    current_account: AuthenticatedAccount = Depends(get_current_account),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Create a billing portal session.

    Lets the account update payment methods and view invoices. Returns to
    the frontend billing page unless return_url is given.
    """
    portal_url = await subscription_service.create_billing_portal_session(
        account_id=current_account.account_id,
        return_url=(
            str(request.return_url) if request and request.return_url else None
        ),
    )
    return PortalSessionResponse(portal_url=portal_url)


# ============================================================================
# Quotas
# ============================================================================


@router.get("/quota", response_model=QuotaStatusResponse)
async def get_quota_status(
    current_account: AuthenticatedAccount = Depends(get_current_account),
    quota_service: QuotaService = Depends(get_quota_service),
):
    """Usage against plan limits. Limits and availability of -1 are unlimited."""
    quota_status = await quota_service.get_quota_status(current_account.account_id)
    return QuotaStatusResponse.model_validate(quota_status.model_dump())


@router.get("/quota/check", response_model=QuotaCheckResponse)
async def check_quota(
    action: QuotaAction = Query(...),
    current_account: AuthenticatedAccount = Depends(get_current_account),
    quota_service: QuotaService = Depends(get_quota_service),
):
    """Whether one more action of this kind is allowed. Read-only."""
    result = await quota_service.check(current_account.account_id, action)
    return QuotaCheckResponse(
        action=action,
        allowed=result.allowed,
        current=result.current,
        limit=result.limit,
        reason=result.reason,
    )
