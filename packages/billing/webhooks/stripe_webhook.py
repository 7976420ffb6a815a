"""
Stripe webhook handler.

Verifies the signature, normalizes the event envelope and hands it to the
webhook state machine. Response codes tell Stripe whether to retry:

- 400: missing/invalid signature or malformed envelope (never retried usefully)
- 500: processing failed, Stripe redelivers
- 200: handled, including ignored, stale and unknown-subscription events
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request
from pydantic import ValidationError

from common.core.otel_axiom_exporter import get_logger
from packages.billing.exceptions import (
    InvalidWebhookPayloadError,
    WebhookProcessingError,
)
from packages.billing.models.domain.enums import (
    BillingEventKind,
    ProviderSubscriptionStatus,
)
from packages.billing.models.domain.stripe_webhooks import (
    BillingWebhookEvent,
    StripeWebhookPayload,
)
from packages.billing.models.schemas.billing import WebhookResponse
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.services.webhook_processor import WebhookProcessor

logger = get_logger(__name__)

EVENT_KINDS = {
    "invoice.payment_succeeded": BillingEventKind.PAYMENT_SUCCEEDED,
    "invoice.paid": BillingEventKind.PAYMENT_SUCCEEDED,
    "invoice.payment_failed": BillingEventKind.PAYMENT_FAILED,
    "customer.subscription.updated": BillingEventKind.SUBSCRIPTION_UPDATED,
    "customer.subscription.deleted": BillingEventKind.SUBSCRIPTION_DELETED,
}


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return None


def _reference_id(value: Any) -> Optional[str]:
    # Stripe sends either an id string or the expanded object
    if isinstance(value, str):
        return value
    return _field(value, "id")


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _invoice_subscription_id(invoice: dict[str, Any]) -> Optional[str]:
    subscription_id = _reference_id(invoice.get("subscription"))
    if subscription_id:
        return subscription_id
    # Newer API versions moved it under parent.subscription_details
    details = _field(invoice.get("parent"), "subscription_details")
    return _reference_id(_field(details, "subscription"))


def _invoice_period(invoice: dict[str, Any]) -> tuple[Any, Any]:
    lines = _field(invoice.get("lines"), "data") or []
    if not lines:
        return None, None
    period = _field(lines[0], "period")
    return _field(period, "start"), _field(period, "end")


def parse_stripe_event(payload: StripeWebhookPayload) -> BillingWebhookEvent:
    """Normalize a Stripe event envelope for the state machine."""
    kind = EVENT_KINDS.get(payload.type, BillingEventKind.UNRECOGNIZED)
    obj = payload.data.object

    external_subscription_id = None
    reported_status = None
    period_start = period_end = None

    if kind in (BillingEventKind.PAYMENT_SUCCEEDED, BillingEventKind.PAYMENT_FAILED):
        external_subscription_id = _invoice_subscription_id(obj)
        if kind == BillingEventKind.PAYMENT_SUCCEEDED:
            period_start, period_end = _invoice_period(obj)
    elif kind in (
        BillingEventKind.SUBSCRIPTION_UPDATED,
        BillingEventKind.SUBSCRIPTION_DELETED,
    ):
        external_subscription_id = _reference_id(obj.get("id"))
        try:
            reported_status = ProviderSubscriptionStatus(obj.get("status"))
        except ValueError:
            logger.warning(
                f"Unknown Stripe subscription status: {obj.get('status')}",
                extra={"event_id": payload.id},
            )

    return BillingWebhookEvent(
        event_id=payload.id,
        provider_type=payload.type,
        kind=kind,
        external_subscription_id=external_subscription_id,
        created=_timestamp(payload.created),
        reported_status=reported_status,
        period_start=_timestamp(period_start),
        period_end=_timestamp(period_end),
    )


async def handle_stripe_webhook(
    request: Request,
    payment_provider: PaymentProviderInterface,
    processor: WebhookProcessor,
) -> WebhookResponse:
    """
    Handle incoming webhook from Stripe.

    Raises:
        InvalidWebhookSignatureError: 400, state untouched
        InvalidWebhookPayloadError: 400, state untouched
        WebhookProcessingError: 500, Stripe retries
    """
    payload_bytes = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    raw_event = payment_provider.construct_webhook_event(payload_bytes, sig_header)

    try:
        payload = StripeWebhookPayload.model_validate(raw_event)
    except ValidationError as e:
        logger.error(
            "Invalid Stripe webhook payload", extra={"validation_errors": e.errors()}
        )
        raise InvalidWebhookPayloadError("Invalid webhook payload") from e

    event = parse_stripe_event(payload)
    context = {
        "event_id": event.event_id,
        "event_type": event.provider_type,
        "external_subscription_id": event.external_subscription_id,
        "livemode": payload.livemode,
    }
    logger.info(f"Received Stripe webhook: {payload.type}", extra=context)

    try:
        outcome = await processor.process(event)
    except WebhookProcessingError:
        raise
    except Exception as e:
        logger.exception(
            f"Failed to process Stripe webhook: {e}",
            extra={**context, "error": str(e)},
        )
        raise WebhookProcessingError("Webhook processing failed") from e

    return WebhookResponse(status="success", outcome=outcome)
