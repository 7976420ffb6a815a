"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from fastapi import APIRouter, Depends, Request

from packages.billing.dependencies import (
    get_payment_provider_dependency,
    get_webhook_processor,
)
from packages.billing.models.schemas.billing import WebhookResponse
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.services.webhook_processor import WebhookProcessor
from packages.billing.webhooks.stripe_webhook import handle_stripe_webhook

router = APIRouter()


@router.post("/webhooks/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    payment: PaymentProviderInterface = Depends(get_payment_provider_dependency),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - webhook signature validated internally.
    """
    return await handle_stripe_webhook(request, payment, processor)
