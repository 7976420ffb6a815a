"""
Interface for payment providers.

Abstracts the billing provider away from the services that mirror its state.
Implementations hold no local state; callers persist only confirmed results.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.stripe_webhooks import ProviderSubscription


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(
        self,
        account_id: int,
        email: str,
        name: Optional[str] = None,
    ) -> str:
        """
        Create a customer in the payment provider.

        Returns:
            customer_id: Payment provider customer ID
        """
        pass

    @abstractmethod
    async def attach_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> None:
        """Attach a payment method to the customer and make it the default."""
        pass

    @abstractmethod
    async def create_subscription(
        self,
        customer_id: str,
        plan: Plan,
        account_id: int,
        payment_method_id: Optional[str] = None,
    ) -> ProviderSubscription:
        """
        Create a subscription to a paid plan.

        The first invoice is left incomplete when the payment needs client
        confirmation; client_secret is set in that case.
        """
        pass

    @abstractmethod
    async def update_subscription_flags(
        self, external_subscription_id: str, cancel_at_period_end: bool
    ) -> None:
        """Schedule or unschedule cancellation at the end of the current period."""
        pass

    @abstractmethod
    async def create_billing_portal_session(
        self,
        customer_id: str,
        return_url: str,
    ) -> str:
        """
        Create a self-service billing portal session.

        Returns:
            portal_url: URL to the billing portal
        """
        pass

    @abstractmethod
    def construct_webhook_event(
        self, payload: bytes, signature: str
    ) -> dict[str, Any]:
        """
        Verify a webhook signature and decode the event.

        Raises:
            InvalidWebhookSignatureError: Signature missing or invalid
            InvalidWebhookPayloadError: Body is not a JSON event
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
