"""
API schemas for billing operations.

Request and response models for billing endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, HttpUrl

from packages.billing.models.domain.enums import (
    QuotaAction,
    SubscriptionStatus,
    WebhookOutcome,
)
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import Subscription


# ============================================================================
# Plan Schemas
# ============================================================================


class PlanResponse(BaseModel):
    """A plan and its limits (-1 = unlimited)."""

    id: str
    name: str
    max_resource_count: int
    max_storage_mb: int
    features: list[str]

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            max_resource_count=plan.max_resource_count,
            max_storage_mb=plan.max_storage_mb,
            features=sorted(plan.features),
        )


class PlansResponse(BaseModel):
    """Response model for plans endpoint."""

    plans: list[PlanResponse]


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionResponse(BaseModel):
    """Locally mirrored subscription state."""

    plan_id: str
    status: SubscriptionStatus
    external_subscription_id: Optional[str] = None
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            plan_id=subscription.plan_id,
            status=subscription.status,
            external_subscription_id=subscription.external_subscription_id,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )


class CurrentPlanResponse(BaseModel):
    """The account's effective plan; subscription is null on the implicit free plan."""

    plan: PlanResponse
    subscription: Optional[SubscriptionResponse] = None


class CreateSubscriptionRequest(BaseModel):
    """Request to subscribe the account to a plan."""

    plan_id: str = Field(..., min_length=1)
    payment_method_id: Optional[str] = Field(
        default=None, description="Provider payment method to attach as default"
    )


class CreateSubscriptionResponse(BaseModel):
    """Response after creating a subscription."""

    plan_id: str
    status: SubscriptionStatus
    external_subscription_id: Optional[str] = None
    client_secret: Optional[str] = Field(
        default=None,
        description="Present when the first payment must be confirmed client-side",
    )


class SubscriptionActionResponse(BaseModel):
    """Response after cancel / reactivate."""

    success: bool
    message: str
    cancel_at_period_end: bool


# ============================================================================
# Portal Schemas
# ============================================================================


class PortalSessionRequest(BaseModel):
    """Request to create a billing portal session."""

    return_url: Optional[HttpUrl] = None


class PortalSessionResponse(BaseModel):
    """Response with portal URL."""

    portal_url: str = Field(..., description="Stripe billing portal URL")


# ============================================================================
# Quota Schemas
# ============================================================================


class QuotaCheckResponse(BaseModel):
    """Whether the next action of a kind is allowed."""

    action: QuotaAction
    allowed: bool
    current: int
    limit: int
    reason: Optional[str] = None


class QuotaUsageResponse(BaseModel):
    used: int
    limit: int
    available: int


class QuotaStatusResponse(BaseModel):
    """Usage against limits for display; not a gate."""

    plan: str
    quotas: dict[str, QuotaUsageResponse]
    features: list[str]


# ============================================================================
# Webhook Schemas
# ============================================================================


class WebhookResponse(BaseModel):
    status: str = "success"
    outcome: WebhookOutcome
