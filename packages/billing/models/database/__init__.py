"""Database models for billing."""

from packages.billing.models.database.subscription import SubscriptionEntity

__all__ = [
    "SubscriptionEntity",
]
