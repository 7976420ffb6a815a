"""
Domain models for subscriptions.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import (
    MutationResult,
    PlanId,
    SubscriptionStatus,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Subscription(BaseModel):
    """
    Account subscription domain model.

    One row per account. No row means the account is on the free plan.
    """

    id: int
    account_id: int

    plan_id: str
    status: SubscriptionStatus

    external_customer_id: Optional[str] = None
    external_subscription_id: Optional[str] = None

    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool = False

    # Provider timestamp of the last webhook applied to this row
    last_event_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @field_validator(
        "current_period_start",
        "current_period_end",
        "last_event_at",
        "created_at",
        "updated_at",
        mode="after",
    )
    @classmethod
    def ensure_utc(cls, v):
        return _as_utc(v)

    def is_paid_and_live(self) -> bool:
        """Check if this row represents an ongoing paid provider subscription."""
        return (
            self.plan_id != PlanId.FREE.value
            and self.external_subscription_id is not None
            and self.status.is_live()
        )


class SubscriptionUpsertModel(BaseModel):
    """
    Model for creating or replacing an account's subscription.

    External ids left as None keep whatever the row already has. The period
    is only moved when both bounds are supplied.
    """

    account_id: int
    plan_id: str
    status: SubscriptionStatus
    external_customer_id: Optional[str] = None
    external_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None


class SubscriptionMutation(BaseModel):
    """Result of a guarded webhook-driven update."""

    result: MutationResult
    subscription: Optional[Subscription] = None

    @property
    def applied(self) -> bool:
        return self.result == MutationResult.APPLIED


class CreateSubscriptionResult(BaseModel):
    """Outcome of a user-initiated signup."""

    plan_id: str
    status: SubscriptionStatus
    external_subscription_id: Optional[str] = None
    # Set only when the first payment needs client-side confirmation
    client_secret: Optional[str] = None
