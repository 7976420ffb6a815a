"""
Domain models for provider webhook payloads and provider-side objects.
"""

from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel

from packages.billing.models.domain.enums import (
    BillingEventKind,
    ProviderSubscriptionStatus,
)


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]  # The actual object (subscription, invoice, etc.)


class StripeWebhookPayload(BaseModel):
    """
    Stripe event envelope.

    ``type`` stays a plain string so event types we don't handle still parse
    and get acknowledged.
    """

    id: str
    type: str
    data: StripeEventData
    created: int
    livemode: bool = False


class BillingWebhookEvent(BaseModel):
    """A provider notification normalized for the webhook state machine."""

    event_id: str
    provider_type: str
    kind: BillingEventKind
    external_subscription_id: Optional[str] = None
    created: datetime
    reported_status: Optional[ProviderSubscriptionStatus] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


class ProviderSubscription(BaseModel):
    """What the provider returned when a subscription was created."""

    external_subscription_id: str
    status: ProviderSubscriptionStatus
    client_secret: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
