"""
Stripe implementation of payment provider.

The Stripe SDK is synchronous; every call runs in a worker thread and is
bounded by settings.billing_provider_timeout_seconds. A timeout means the
outcome is unknown, so callers must not mirror it locally.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

import stripe

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.exceptions import (
    InvalidWebhookPayloadError,
    InvalidWebhookSignatureError,
    PaymentProviderError,
    PaymentProviderTimeoutError,
)
from packages.billing.models.domain.enums import (
    PlanId,
    ProviderSubscriptionStatus,
)
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.stripe_webhooks import ProviderSubscription
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)

T = TypeVar("T")


def _field(obj: Any, name: str) -> Any:
    """Read a field from a Stripe object or plain dict; None when absent."""
    if obj is None:
        return None
    try:
        return obj[name]
    except (KeyError, TypeError, IndexError):
        return None


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _subscription_period(subscription: Any) -> tuple[Any, Any]:
    # Newer API versions report the period on the subscription item
    start = _field(subscription, "current_period_start")
    end = _field(subscription, "current_period_end")
    if start is None or end is None:
        items = _field(_field(subscription, "items"), "data") or []
        if items:
            start = _field(items[0], "current_period_start")
            end = _field(items[0], "current_period_end")
    return start, end


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """Initialize Stripe with API credentials."""
        stripe.api_key = api_key or settings.stripe_secret_key
        self.webhook_secret = webhook_secret or settings.stripe_webhook_secret
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.billing_provider_timeout_seconds
        )

        # Paid plans map to Stripe price IDs configured in the dashboard
        self.price_ids = {
            PlanId.PRO.value: settings.stripe_price_id_pro,
            PlanId.ENTERPRISE.value: settings.stripe_price_id_enterprise,
        }

    async def _call(
        self, operation: str, func: Callable[..., T], *args, **kwargs
    ) -> T:
        """Run a blocking Stripe call off the event loop with a deadline."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Stripe {operation} timed out after {self.timeout_seconds}s",
                extra={"operation": operation, "timeout": self.timeout_seconds},
            )
            raise PaymentProviderTimeoutError(
                f"Billing provider did not respond to {operation}",
                operation=operation,
            )
        except stripe.StripeError as e:
            logger.error(
                f"Stripe {operation} failed: {e}",
                extra={
                    "operation": operation,
                    "error": str(e),
                    "stripe_code": getattr(e, "code", None),
                },
            )
            raise PaymentProviderError(
                f"Billing provider rejected {operation}: {e.user_message or e}",
                operation=operation,
            ) from e

    def _price_id_for(self, plan: Plan) -> str:
        price_id = self.price_ids.get(plan.id)
        if not price_id:
            raise PaymentProviderError(
                f"No Stripe price configured for plan {plan.id}",
                operation="create_subscription",
            )
        return price_id

    @trace_span
    async def create_customer(
        self,
        account_id: int,
        email: str,
        name: Optional[str] = None,
    ) -> str:
        """Create a Stripe customer."""
        customer = await self._call(
            "create_customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"account_id": str(account_id)},
        )

        logger.info(
            "Created Stripe customer",
            extra={"account_id": account_id, "customer_id": customer.id},
        )
        return customer.id

    @trace_span
    async def attach_payment_method(
        self, customer_id: str, payment_method_id: str
    ) -> None:
        await self._call(
            "attach_payment_method",
            stripe.PaymentMethod.attach,
            payment_method_id,
            customer=customer_id,
        )
        await self._call(
            "set_default_payment_method",
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )
        logger.info(
            "Attached default payment method",
            extra={"customer_id": customer_id, "payment_method_id": payment_method_id},
        )

    @trace_span
    async def create_subscription(
        self,
        customer_id: str,
        plan: Plan,
        account_id: int,
        payment_method_id: Optional[str] = None,
    ) -> ProviderSubscription:
        params: dict[str, Any] = {
            "customer": customer_id,
            "items": [{"price": self._price_id_for(plan)}],
            "payment_behavior": "default_incomplete",
            "expand": ["latest_invoice.payment_intent"],
            "metadata": {"account_id": str(account_id), "plan_id": plan.id},
        }
        if payment_method_id:
            params["default_payment_method"] = payment_method_id

        subscription = await self._call(
            "create_subscription", stripe.Subscription.create, **params
        )

        try:
            status = ProviderSubscriptionStatus(_field(subscription, "status"))
        except ValueError as e:
            # The provider subscription exists; nothing is mirrored locally
            logger.error(
                f"Stripe returned unknown subscription status: "
                f"{_field(subscription, 'status')}",
                extra={
                    "account_id": account_id,
                    "customer_id": customer_id,
                    "subscription_id": _field(subscription, "id"),
                },
            )
            raise PaymentProviderError(
                f"Billing provider returned unknown status for subscription "
                f"{_field(subscription, 'id')}",
                operation="create_subscription",
            ) from e

        client_secret = None
        if status == ProviderSubscriptionStatus.INCOMPLETE:
            payment_intent = _field(
                _field(subscription, "latest_invoice"), "payment_intent"
            )
            client_secret = _field(payment_intent, "client_secret")

        period_start, period_end = _subscription_period(subscription)

        logger.info(
            f"Created Stripe subscription for plan {plan.id}",
            extra={
                "account_id": account_id,
                "customer_id": customer_id,
                "subscription_id": subscription.id,
                "status": status.value,
            },
        )

        return ProviderSubscription(
            external_subscription_id=subscription.id,
            status=status,
            client_secret=client_secret,
            current_period_start=_timestamp(period_start),
            current_period_end=_timestamp(period_end),
        )

    @trace_span
    async def update_subscription_flags(
        self, external_subscription_id: str, cancel_at_period_end: bool
    ) -> None:
        await self._call(
            "update_subscription",
            stripe.Subscription.modify,
            external_subscription_id,
            cancel_at_period_end=cancel_at_period_end,
        )
        logger.info(
            "Updated Stripe subscription cancellation flag",
            extra={
                "subscription_id": external_subscription_id,
                "cancel_at_period_end": cancel_at_period_end,
            },
        )

    @trace_span
    async def create_billing_portal_session(
        self,
        customer_id: str,
        return_url: str,
    ) -> str:
        """Create Stripe billing portal session."""
        session = await self._call(
            "create_billing_portal_session",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )

        logger.info("Created Stripe portal session", extra={"customer_id": customer_id})
        return session.url

    def construct_webhook_event(
        self, payload: bytes, signature: str
    ) -> dict[str, Any]:
        if not signature:
            raise InvalidWebhookSignatureError("Missing stripe-signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning(f"Stripe webhook signature verification failed: {e}")
            raise InvalidWebhookSignatureError("Invalid signature") from e

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise InvalidWebhookPayloadError("Webhook body is not valid JSON") from e
        if not isinstance(event, dict):
            raise InvalidWebhookPayloadError("Webhook body is not an event object")
        return event

    @trace_span
    async def health_check(self) -> bool:
        """Check Stripe health."""
        try:
            # Retrieving the account verifies the API key works
            await self._call("health_check", stripe.Account.retrieve)
            return True
        except PaymentProviderError as e:
            logger.error(f"Payment health check failed: {e}")
            return False
