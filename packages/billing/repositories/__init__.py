"""Billing repositories."""

from packages.billing.repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "SubscriptionRepository",
]
