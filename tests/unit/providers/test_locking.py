import asyncio
import time

import pytest
from unittest.mock import AsyncMock, patch
import redis.asyncio as redis

from common.core.constants import LockProviderType
from common.providers.locking import factory
from common.providers.locking.factory import get_lock_provider, close_lock_provider
from common.providers.locking.interface import LockNotAcquiredError
from common.providers.locking.memory_lock import MemoryLock
from common.providers.locking.redis_lock import RedisLock


class TestRedisLock:
    """Unit tests for Redis distributed lock."""

    @pytest.fixture
    def redis_lock(self):
        return RedisLock(url="redis://localhost:6379/0")

    @pytest.fixture
    def mock_redis_client(self, redis_lock):
        client = AsyncMock(spec=redis.Redis)
        redis_lock._client = client
        return client

    async def test_acquire_lock_success(self, redis_lock, mock_redis_client):
        """Test successful lock acquisition."""
        mock_redis_client.set = AsyncMock(return_value=True)

        token = await redis_lock.acquire_lock("test_resource", 30)

        assert token is not None
        assert len(token) == 36  # UUID length
        mock_redis_client.set.assert_called_once_with(
            "lock:test_resource", token, nx=True, ex=30
        )

    async def test_acquire_lock_already_locked(self, redis_lock, mock_redis_client):
        """Test lock acquisition when resource is already locked."""
        mock_redis_client.set = AsyncMock(return_value=False)

        token = await redis_lock.acquire_lock("test_resource", 30)

        assert token is None

    async def test_release_lock_success(self, redis_lock, mock_redis_client):
        """Test successful lock release."""
        mock_redis_client.eval = AsyncMock(return_value=1)

        result = await redis_lock.release_lock("test_resource", "test_token")

        assert result is True
        args = mock_redis_client.eval.call_args.args
        assert args[1:] == (1, "lock:test_resource", "test_token")

    async def test_release_lock_token_mismatch(self, redis_lock, mock_redis_client):
        """Test lock release with wrong token."""
        mock_redis_client.eval = AsyncMock(return_value=0)

        result = await redis_lock.release_lock("test_resource", "wrong_token")

        assert result is False

    async def test_release_lock_redis_error(self, redis_lock, mock_redis_client):
        """Errors on release are logged and reported as not released."""
        mock_redis_client.eval = AsyncMock(side_effect=redis.RedisError("down"))

        result = await redis_lock.release_lock("test_resource", "test_token")

        assert result is False

    async def test_is_locked(self, redis_lock, mock_redis_client):
        mock_redis_client.exists = AsyncMock(return_value=1)

        assert await redis_lock.is_locked("test_resource") is True
        mock_redis_client.exists.assert_called_once_with("lock:test_resource")

    async def test_custom_key_prefix(self, mock_redis_client):
        lock = RedisLock(url="redis://localhost:6379/0", key_prefix="billing:")
        lock._client = mock_redis_client
        mock_redis_client.exists = AsyncMock(return_value=0)

        assert await lock.is_locked("sub_1") is False
        mock_redis_client.exists.assert_called_once_with("billing:sub_1")

    async def test_client_created_lazily(self, redis_lock):
        """The client is only built on first use."""
        client = AsyncMock(spec=redis.Redis)
        client.set = AsyncMock(return_value=True)
        with patch(
            "common.providers.locking.redis_lock.redis.from_url", return_value=client
        ) as from_url:
            await redis_lock.acquire_lock("a")
            await redis_lock.acquire_lock("b")

        from_url.assert_called_once_with(
            "redis://localhost:6379/0", decode_responses=True
        )

    async def test_close(self, redis_lock, mock_redis_client):
        await redis_lock.close()

        mock_redis_client.aclose.assert_awaited_once()
        assert redis_lock._client is None


class TestMemoryLock:
    """Unit tests for the in-process lock provider."""

    async def test_acquire_and_release(self):
        lock = MemoryLock()

        token = await lock.acquire_lock("resource", 30)

        assert token is not None
        assert await lock.is_locked("resource") is True
        assert await lock.acquire_lock("resource", 30) is None
        assert await lock.release_lock("resource", token) is True
        assert await lock.is_locked("resource") is False

    async def test_release_with_wrong_token(self):
        lock = MemoryLock()
        await lock.acquire_lock("resource", 30)

        assert await lock.release_lock("resource", "wrong") is False
        assert await lock.is_locked("resource") is True

    async def test_expired_lock_can_be_reacquired(self):
        lock = MemoryLock()
        first = await lock.acquire_lock("resource", 30)

        with patch(
            "common.providers.locking.memory_lock.time.monotonic",
            return_value=time.monotonic() + 31,
        ):
            second = await lock.acquire_lock("resource", 30)

        assert second is not None
        assert second != first

    async def test_keys_are_independent(self):
        lock = MemoryLock()

        assert await lock.acquire_lock("a", 30) is not None
        assert await lock.acquire_lock("b", 30) is not None


class TestAcquireLockWithRetry:
    """Tests for acquire_lock_with_retry."""

    async def test_success_first_try(self):
        lock = MemoryLock()

        token = await lock.acquire_lock_with_retry(
            "resource", lock_ttl_seconds=30, acquire_timeout_seconds=1.0
        )

        assert token is not None

    async def test_success_after_release(self):
        lock = MemoryLock()
        holder = await lock.acquire_lock("resource", 30)

        async def release_soon():
            await asyncio.sleep(0.05)
            await lock.release_lock("resource", holder)

        release_task = asyncio.create_task(release_soon())
        token = await lock.acquire_lock_with_retry(
            "resource",
            lock_ttl_seconds=30,
            acquire_timeout_seconds=2.0,
            retry_interval_ms=10,
        )
        await release_task

        assert token is not None
        assert token != holder

    async def test_timeout(self):
        lock = MemoryLock()
        await lock.acquire_lock("resource", 30)

        start = time.monotonic()
        token = await lock.acquire_lock_with_retry(
            "resource",
            lock_ttl_seconds=30,
            acquire_timeout_seconds=0.1,
            retry_interval_ms=20,
        )

        assert token is None
        assert time.monotonic() - start < 1.0

    async def test_zero_timeout_tries_once(self):
        lock = MemoryLock()

        token = await lock.acquire_lock_with_retry(
            "resource", acquire_timeout_seconds=0
        )

        assert token is not None


class TestHold:
    """Tests for the hold() context manager."""

    async def test_releases_after_block(self):
        lock = MemoryLock()

        async with lock.hold("resource") as token:
            assert token is not None
            assert await lock.is_locked("resource") is True

        assert await lock.is_locked("resource") is False

    async def test_releases_on_exception(self):
        lock = MemoryLock()

        with pytest.raises(RuntimeError):
            async with lock.hold("resource"):
                raise RuntimeError("boom")

        assert await lock.is_locked("resource") is False

    async def test_raises_when_held_elsewhere(self):
        lock = MemoryLock()
        await lock.acquire_lock("resource", 30)

        with pytest.raises(LockNotAcquiredError) as exc_info:
            async with lock.hold("resource", acquire_timeout_seconds=0.05):
                pytest.fail("block must not run without the lock")

        assert exc_info.value.resource_key == "resource"

    async def test_serializes_same_key(self):
        lock = MemoryLock()
        order = []

        async def worker(name: str):
            async with lock.hold("resource", acquire_timeout_seconds=2.0):
                order.append(f"{name}-start")
                await asyncio.sleep(0.02)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        # No interleaving: each start is directly followed by its own end
        assert order[0].split("-")[0] == order[1].split("-")[0]
        assert order[2].split("-")[0] == order[3].split("-")[0]


class TestLockProviderFactory:
    """Tests for get_lock_provider selection."""

    @pytest.fixture(autouse=True)
    def reset_provider(self):
        factory._lock_provider = None
        yield
        factory._lock_provider = None

    def test_memory_provider(self):
        with patch.object(factory.settings, "lock_provider", LockProviderType.MEMORY):
            provider = get_lock_provider()

        assert isinstance(provider, MemoryLock)

    def test_redis_provider(self):
        with patch.object(factory.settings, "lock_provider", LockProviderType.REDIS):
            provider = get_lock_provider()

        assert isinstance(provider, RedisLock)

    def test_provider_is_shared(self):
        with patch.object(factory.settings, "lock_provider", LockProviderType.MEMORY):
            assert get_lock_provider() is get_lock_provider()

    async def test_close_resets_provider(self):
        with patch.object(factory.settings, "lock_provider", LockProviderType.MEMORY):
            get_lock_provider()

        await close_lock_provider()

        assert factory._lock_provider is None
