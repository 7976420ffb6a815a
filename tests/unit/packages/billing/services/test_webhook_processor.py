"""
Unit tests for the webhook state machine.

Events run against the real database and an in-memory lock provider.
"""

import asyncio
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock

from packages.billing.exceptions import WebhookProcessingError
from packages.billing.lock_keys import webhook_lock_key
from packages.billing.models.domain.enums import (
    MutationResult,
    BillingEventKind,
    ProviderSubscriptionStatus,
    SubscriptionStatus,
    WebhookOutcome,
)
from packages.billing.models.domain.stripe_webhooks import BillingWebhookEvent
from packages.billing.models.domain.subscription import SubscriptionMutation
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.services.webhook_processor import WebhookProcessor

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(
    kind: BillingEventKind,
    external_subscription_id="sub_test123",
    created: datetime = BASE_TIME,
    **kwargs,
) -> BillingWebhookEvent:
    return BillingWebhookEvent(
        event_id="evt_test",
        provider_type=kind.value,
        kind=kind,
        external_subscription_id=external_subscription_id,
        created=created,
        **kwargs,
    )


@pytest.fixture
def processor(memory_lock):
    return WebhookProcessor(lock_provider=memory_lock, lock_acquire_timeout_seconds=0.1)


async def _current(account_id: int):
    return await SubscriptionRepository().get_by_account_id(account_id)


@pytest.mark.asyncio
class TestWebhookTransitions:
    async def test_payment_succeeded_activates_and_extends(
        self, processor, pro_subscription
    ):
        await SubscriptionRepository().update_status(
            "sub_test123", SubscriptionStatus.PAST_DUE
        )
        new_end = pro_subscription.current_period_end + timedelta(days=30)

        outcome = await processor.process(
            _event(
                BillingEventKind.PAYMENT_SUCCEEDED,
                period_start=pro_subscription.current_period_end,
                period_end=new_end,
            )
        )

        assert outcome == WebhookOutcome.APPLIED
        current = await _current(pro_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.current_period_end == new_end

    async def test_payment_failed_marks_past_due(self, processor, pro_subscription):
        outcome = await processor.process(_event(BillingEventKind.PAYMENT_FAILED))

        assert outcome == WebhookOutcome.APPLIED
        current = await _current(pro_subscription.account_id)
        assert current.status == SubscriptionStatus.PAST_DUE
        assert current.plan_id == "pro"

    @pytest.mark.parametrize(
        "reported, expected",
        [
            (ProviderSubscriptionStatus.ACTIVE, SubscriptionStatus.ACTIVE),
            (ProviderSubscriptionStatus.PAST_DUE, SubscriptionStatus.PAST_DUE),
            (ProviderSubscriptionStatus.UNPAID, SubscriptionStatus.UNPAID),
            (ProviderSubscriptionStatus.INCOMPLETE, SubscriptionStatus.TRIALING),
            (ProviderSubscriptionStatus.INCOMPLETE_EXPIRED, SubscriptionStatus.CANCELED),
            (ProviderSubscriptionStatus.PAUSED, SubscriptionStatus.UNPAID),
        ],
    )
    async def test_subscription_updated_mirrors_status(
        self, processor, pro_subscription, reported, expected
    ):
        outcome = await processor.process(
            _event(BillingEventKind.SUBSCRIPTION_UPDATED, reported_status=reported)
        )

        assert outcome == WebhookOutcome.APPLIED
        current = await _current(pro_subscription.account_id)
        assert current.status == expected

    async def test_subscription_deleted_downgrades_in_place(
        self, processor, pro_subscription
    ):
        outcome = await processor.process(
            _event(
                BillingEventKind.SUBSCRIPTION_DELETED,
                reported_status=ProviderSubscriptionStatus.CANCELED,
            )
        )

        assert outcome == WebhookOutcome.APPLIED
        current = await _current(pro_subscription.account_id)
        assert current.id == pro_subscription.id
        assert current.plan_id == "free"
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.external_subscription_id is None


@pytest.mark.asyncio
class TestWebhookOrdering:
    async def test_stale_event_is_skipped(self, processor, pro_subscription):
        await processor.process(
            _event(
                BillingEventKind.SUBSCRIPTION_UPDATED,
                reported_status=ProviderSubscriptionStatus.UNPAID,
                created=BASE_TIME,
            )
        )

        outcome = await processor.process(
            _event(
                BillingEventKind.PAYMENT_SUCCEEDED,
                created=BASE_TIME - timedelta(minutes=1),
            )
        )

        assert outcome == WebhookOutcome.STALE
        current = await _current(pro_subscription.account_id)
        assert current.status == SubscriptionStatus.UNPAID

    async def test_redelivery_is_harmless(self, processor, pro_subscription):
        event = _event(BillingEventKind.PAYMENT_FAILED)

        first = await processor.process(event)
        second = await processor.process(event)

        assert first == WebhookOutcome.APPLIED
        assert second == WebhookOutcome.APPLIED
        current = await _current(pro_subscription.account_id)
        assert current.status == SubscriptionStatus.PAST_DUE

    async def test_duplicate_payment_succeeded(self, processor, pro_subscription):
        event = _event(BillingEventKind.PAYMENT_SUCCEEDED)

        outcomes = [await processor.process(event), await processor.process(event)]

        assert outcomes == [WebhookOutcome.APPLIED, WebhookOutcome.APPLIED]
        rows = await SubscriptionRepository().get_multi(
            account_id=pro_subscription.account_id
        )
        assert len(rows) == 1
        assert rows[0].status == SubscriptionStatus.ACTIVE

    async def test_events_after_deletion_find_nothing(
        self, processor, pro_subscription
    ):
        await processor.process(_event(BillingEventKind.SUBSCRIPTION_DELETED))

        outcome = await processor.process(
            _event(
                BillingEventKind.PAYMENT_SUCCEEDED,
                created=BASE_TIME + timedelta(minutes=1),
            )
        )

        assert outcome == WebhookOutcome.NOT_FOUND
        current = await _current(pro_subscription.account_id)
        assert current.plan_id == "free"


@pytest.mark.asyncio
class TestWebhookIgnored:
    async def test_unrecognized_kind(self, processor, pro_subscription):
        outcome = await processor.process(_event(BillingEventKind.UNRECOGNIZED))

        assert outcome == WebhookOutcome.IGNORED

    async def test_missing_subscription_reference(self, processor, pro_subscription):
        outcome = await processor.process(
            _event(BillingEventKind.PAYMENT_SUCCEEDED, external_subscription_id=None)
        )

        assert outcome == WebhookOutcome.IGNORED
        current = await _current(pro_subscription.account_id)
        assert current.last_event_at is None

    async def test_update_with_unknown_status(self, processor, pro_subscription):
        outcome = await processor.process(
            _event(BillingEventKind.SUBSCRIPTION_UPDATED, reported_status=None)
        )

        assert outcome == WebhookOutcome.IGNORED

    async def test_unknown_subscription(self, processor, pro_subscription):
        outcome = await processor.process(
            _event(BillingEventKind.PAYMENT_FAILED, external_subscription_id="sub_other")
        )

        assert outcome == WebhookOutcome.NOT_FOUND


@pytest.mark.asyncio
class TestWebhookLocking:
    async def test_lock_is_released_after_processing(
        self, processor, memory_lock, pro_subscription
    ):
        await processor.process(_event(BillingEventKind.PAYMENT_FAILED))

        assert await memory_lock.is_locked(webhook_lock_key("sub_test123")) is False

    async def test_lock_is_released_on_failure(self, memory_lock):
        repo = AsyncMock()
        repo.update_status = AsyncMock(side_effect=RuntimeError("db down"))
        processor = WebhookProcessor(lock_provider=memory_lock, subscription_repo=repo)

        with pytest.raises(RuntimeError):
            await processor.process(_event(BillingEventKind.PAYMENT_FAILED))

        assert await memory_lock.is_locked(webhook_lock_key("sub_test123")) is False

    async def test_lock_timeout_is_retryable(
        self, processor, memory_lock, pro_subscription
    ):
        await memory_lock.acquire_lock(webhook_lock_key("sub_test123"), 30)

        with pytest.raises(WebhookProcessingError) as exc_info:
            await processor.process(_event(BillingEventKind.PAYMENT_FAILED))

        assert exc_info.value.status_code == 500
        current = await _current(pro_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE

    async def test_other_subscriptions_are_not_blocked(
        self, processor, memory_lock, pro_subscription
    ):
        await memory_lock.acquire_lock(webhook_lock_key("sub_other"), 30)

        outcome = await processor.process(_event(BillingEventKind.PAYMENT_FAILED))

        assert outcome == WebhookOutcome.APPLIED

    async def test_same_subscription_events_are_serialized(self, memory_lock):
        active = 0
        max_active = 0

        async def slow_update(*args, **kwargs):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.02)
            active -= 1
            return SubscriptionMutation(result=MutationResult.NOT_FOUND)

        repo = AsyncMock()
        repo.update_status = AsyncMock(side_effect=slow_update)
        processor = WebhookProcessor(
            lock_provider=memory_lock,
            subscription_repo=repo,
            lock_acquire_timeout_seconds=2.0,
        )

        outcomes = await asyncio.gather(
            processor.process(_event(BillingEventKind.PAYMENT_FAILED)),
            processor.process(
                _event(
                    BillingEventKind.SUBSCRIPTION_UPDATED,
                    reported_status=ProviderSubscriptionStatus.ACTIVE,
                )
            ),
        )

        assert outcomes == [WebhookOutcome.NOT_FOUND, WebhookOutcome.NOT_FOUND]
        assert max_active == 1
