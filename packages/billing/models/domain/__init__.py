"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    PlanId,
    QuotaAction,
    ProviderSubscriptionStatus,
    BillingEventKind,
    WebhookOutcome,
    MutationResult,
)
from packages.billing.models.domain.plans import Plan, UNLIMITED
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionUpsertModel,
    SubscriptionMutation,
    CreateSubscriptionResult,
)
from packages.billing.models.domain.usage import (
    UsageSnapshot,
    QuotaCheck,
    QuotaUsage,
    QuotaStatus,
)
from packages.billing.models.domain.stripe_webhooks import (
    BillingWebhookEvent,
    ProviderSubscription,
)

__all__ = [
    # Enums
    "SubscriptionStatus",
    "PlanId",
    "QuotaAction",
    "ProviderSubscriptionStatus",
    "BillingEventKind",
    "WebhookOutcome",
    "MutationResult",
    # Plans
    "Plan",
    "UNLIMITED",
    # Subscription
    "Subscription",
    "SubscriptionUpsertModel",
    "SubscriptionMutation",
    "CreateSubscriptionResult",
    # Usage
    "UsageSnapshot",
    "QuotaCheck",
    "QuotaUsage",
    "QuotaStatus",
    # Provider
    "BillingWebhookEvent",
    "ProviderSubscription",
]
