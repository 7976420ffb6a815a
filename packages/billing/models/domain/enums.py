"""
Billing enums - strongly typed enumerations for subscription and billing states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Local subscription status.

    Only explicit user actions and validated provider notifications move a
    subscription between these states.
    """

    TRIALING = "trialing"  # Created, first payment not yet confirmed
    ACTIVE = "active"  # Paid and in good standing
    PAST_DUE = "past_due"  # Payment failed, provider is retrying
    UNPAID = "unpaid"  # Retries exhausted or collection paused
    CANCELED = "canceled"  # Ended on the provider side

    def is_live(self) -> bool:
        """Check if this status still represents an ongoing paid relationship."""
        return self in (
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
        )


class PlanId(str, Enum):
    """Plans compiled into the catalog."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class QuotaAction(str, Enum):
    """Actions gated by plan quotas."""

    CREATE_RESOURCE = "create_resource"
    UPLOAD_ASSET = "upload_asset"


class ProviderSubscriptionStatus(str, Enum):
    """Stripe subscription status values."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"

    def to_subscription_status(self) -> SubscriptionStatus:
        """Map the provider's richer status set onto local statuses."""
        return _PROVIDER_STATUS_MAP[self]


_PROVIDER_STATUS_MAP = {
    ProviderSubscriptionStatus.ACTIVE: SubscriptionStatus.ACTIVE,
    ProviderSubscriptionStatus.TRIALING: SubscriptionStatus.TRIALING,
    ProviderSubscriptionStatus.PAST_DUE: SubscriptionStatus.PAST_DUE,
    ProviderSubscriptionStatus.UNPAID: SubscriptionStatus.UNPAID,
    ProviderSubscriptionStatus.CANCELED: SubscriptionStatus.CANCELED,
    ProviderSubscriptionStatus.INCOMPLETE: SubscriptionStatus.TRIALING,
    ProviderSubscriptionStatus.INCOMPLETE_EXPIRED: SubscriptionStatus.CANCELED,
    ProviderSubscriptionStatus.PAUSED: SubscriptionStatus.UNPAID,
}


class BillingEventKind(str, Enum):
    """Provider notifications, normalized to what the state machine handles."""

    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    UNRECOGNIZED = "unrecognized"


class WebhookOutcome(str, Enum):
    """What processing a webhook event did to local state."""

    APPLIED = "applied"
    IGNORED = "ignored"  # Unrecognized kind or no subscription reference
    NOT_FOUND = "not_found"  # No local row for the external subscription id
    STALE = "stale"  # Older than the last applied event


class MutationResult(str, Enum):
    """Outcome of a guarded single-row update."""

    APPLIED = "applied"
    STALE = "stale"
    NOT_FOUND = "not_found"
