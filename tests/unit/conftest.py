import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from common.providers.locking.memory_lock import MemoryLock
from packages.billing.models.domain.enums import ProviderSubscriptionStatus
from packages.billing.models.domain.stripe_webhooks import ProviderSubscription
from packages.billing.providers.payment.interface import PaymentProviderInterface


@pytest.fixture
def mock_lock_provider():
    """Create a mock lock provider instance for testing."""
    lock = AsyncMock()
    lock.acquire_lock = AsyncMock(return_value="test-lock-token")
    lock.acquire_lock_with_retry = AsyncMock(return_value="test-lock-token")
    lock.release_lock = AsyncMock(return_value=True)
    lock.is_locked = AsyncMock(return_value=False)
    return lock


@pytest.fixture
def memory_lock():
    """A real in-process lock provider."""
    return MemoryLock()


@pytest.fixture(autouse=True)
def mock_get_lock_provider(memory_lock):
    """Route all unit tests to an isolated in-memory lock provider."""
    with patch(
        "common.providers.locking.factory.get_lock_provider",
        return_value=memory_lock,
    ), patch(
        "packages.billing.dependencies.get_lock_provider",
        return_value=memory_lock,
    ):
        yield


@pytest.fixture
def mock_payment_provider():
    """Create a mock payment provider that accepts every call."""
    provider = AsyncMock(spec=PaymentProviderInterface)
    provider.create_customer = AsyncMock(return_value="cus_new123")
    provider.attach_payment_method = AsyncMock(return_value=None)
    provider.create_subscription = AsyncMock(
        return_value=ProviderSubscription(
            external_subscription_id="sub_new123",
            status=ProviderSubscriptionStatus.ACTIVE,
        )
    )
    provider.update_subscription_flags = AsyncMock(return_value=None)
    provider.create_billing_portal_session = AsyncMock(
        return_value="https://billing.stripe.com/session/test123"
    )
    provider.health_check = AsyncMock(return_value=True)
    provider.construct_webhook_event = MagicMock()
    return provider


@pytest.fixture
def mock_span():
    """Create a mock span instance for testing telemetry."""
    span = MagicMock()
    span.__enter__ = MagicMock(return_value=span)
    span.__exit__ = MagicMock(return_value=None)
    span.__aenter__ = AsyncMock(return_value=span)
    span.__aexit__ = AsyncMock(return_value=None)
    return span
