"""
Webhook state machine.

Applies normalized provider notifications to the local subscription row.
Every transition writes an absolute target state, so redelivery is
harmless, and the store rejects events older than the last one applied.
Events for the same provider subscription are serialized through a
per-key lock; different subscriptions never contend.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger, log_span_event
from common.providers.locking.interface import (
    DistributedLockInterface,
    LockNotAcquiredError,
)
from packages.billing.exceptions import WebhookProcessingError
from packages.billing.lock_keys import webhook_lock_key
from packages.billing.models.domain.enums import (
    BillingEventKind,
    MutationResult,
    SubscriptionStatus,
    WebhookOutcome,
)
from packages.billing.models.domain.stripe_webhooks import BillingWebhookEvent
from packages.billing.models.domain.subscription import SubscriptionMutation
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)

logger = get_logger(__name__)

_OUTCOMES = {
    MutationResult.APPLIED: WebhookOutcome.APPLIED,
    MutationResult.STALE: WebhookOutcome.STALE,
    MutationResult.NOT_FOUND: WebhookOutcome.NOT_FOUND,
}


class WebhookProcessor:
    def __init__(
        self,
        lock_provider: DistributedLockInterface,
        subscription_repo: Optional[SubscriptionRepository] = None,
        lock_ttl_seconds: Optional[int] = None,
        lock_acquire_timeout_seconds: Optional[float] = None,
    ):
        self.lock_provider = lock_provider
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.lock_ttl_seconds = lock_ttl_seconds or settings.webhook_lock_ttl_seconds
        self.lock_acquire_timeout_seconds = (
            lock_acquire_timeout_seconds
            if lock_acquire_timeout_seconds is not None
            else settings.webhook_lock_acquire_timeout_seconds
        )

    @trace_span
    async def process(self, event: BillingWebhookEvent) -> WebhookOutcome:
        """
        Apply one event and report what happened.

        Raises:
            WebhookProcessingError: The subscription's lock could not be
                acquired in time; the provider should redeliver
        """
        context = {
            "event_id": event.event_id,
            "event_type": event.provider_type,
            "external_subscription_id": event.external_subscription_id,
        }

        if event.kind == BillingEventKind.UNRECOGNIZED:
            logger.info(
                f"Ignoring unhandled webhook type: {event.provider_type}",
                extra=context,
            )
            return WebhookOutcome.IGNORED

        if not event.external_subscription_id:
            logger.info(
                f"Ignoring {event.provider_type} without a subscription reference",
                extra=context,
            )
            return WebhookOutcome.IGNORED

        if (
            event.kind == BillingEventKind.SUBSCRIPTION_UPDATED
            and event.reported_status is None
        ):
            logger.warning(
                "Ignoring subscription update with unknown status", extra=context
            )
            return WebhookOutcome.IGNORED

        key = webhook_lock_key(event.external_subscription_id)
        try:
            async with self.lock_provider.hold(
                key,
                lock_ttl_seconds=self.lock_ttl_seconds,
                acquire_timeout_seconds=self.lock_acquire_timeout_seconds,
            ):
                mutation = await self._apply(event)
        except LockNotAcquiredError as e:
            logger.error(
                f"Timed out waiting for webhook lock {key}", extra=context
            )
            raise WebhookProcessingError(str(e)) from e

        outcome = _OUTCOMES[mutation.result]
        if outcome == WebhookOutcome.APPLIED:
            log_span_event(
                f"Applied {event.kind.value}",
                {**context, "status": mutation.subscription.status.value},
            )
        elif outcome == WebhookOutcome.STALE:
            logger.info(
                f"Skipped stale {event.kind.value} event",
                extra={
                    **context,
                    "event_created": event.created.isoformat(),
                    "last_event_at": (
                        mutation.subscription.last_event_at.isoformat()
                        if mutation.subscription and mutation.subscription.last_event_at
                        else None
                    ),
                },
            )
        else:
            # Detached or unknown subscription ids are expected after downgrades
            logger.info(
                f"No subscription for {event.kind.value} event", extra=context
            )
        return outcome

    async def _apply(self, event: BillingWebhookEvent) -> SubscriptionMutation:
        external_id = event.external_subscription_id

        if event.kind == BillingEventKind.PAYMENT_SUCCEEDED:
            return await self.subscription_repo.mark_payment_succeeded(
                external_id,
                event_at=event.created,
                period_start=event.period_start,
                period_end=event.period_end,
            )
        if event.kind == BillingEventKind.SUBSCRIPTION_DELETED:
            return await self.subscription_repo.downgrade_to_free(
                external_id, event_at=event.created
            )
        if event.kind == BillingEventKind.SUBSCRIPTION_UPDATED:
            return await self.subscription_repo.update_status(
                external_id,
                event.reported_status.to_subscription_status(),
                event_at=event.created,
            )
        if event.kind == BillingEventKind.PAYMENT_FAILED:
            return await self.subscription_repo.update_status(
                external_id, SubscriptionStatus.PAST_DUE, event_at=event.created
            )
        raise ValueError(f"No transition for {event.kind}")
