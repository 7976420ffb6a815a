import uuid
from typing import Optional
import redis.asyncio as redis

from common.core.config import settings
from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

# Delete only if the caller still owns the lock
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLock(DistributedLockInterface):
    """Redis-based distributed lock (SET NX EX with token-checked release)."""

    def __init__(self, url: Optional[str] = None, key_prefix: str = "lock:"):
        self._url = url or settings.redis_connection_url
        self._key_prefix = key_prefix
        self._client: Optional[redis.Redis] = None

    def _key(self, resource_key: str) -> str:
        return f"{self._key_prefix}{resource_key}"

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)
            logger.info("Redis lock provider connected")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis lock provider disconnected")

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        client = await self._get_client()
        lock_token = str(uuid.uuid4())

        acquired = await client.set(
            self._key(resource_key), lock_token, nx=True, ex=timeout_seconds
        )
        if acquired:
            logger.debug(f"Acquired lock for {resource_key}")
            return lock_token

        logger.debug(f"Lock for {resource_key} is held elsewhere")
        return None

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        client = await self._get_client()
        try:
            result = await client.eval(
                _RELEASE_SCRIPT, 1, self._key(resource_key), lock_token
            )
        except redis.RedisError as e:
            # The TTL frees the key eventually
            logger.error(f"Error releasing lock for {resource_key}: {e}")
            return False

        if not result:
            logger.warning(
                f"Cannot release lock for {resource_key} - token mismatch or lock expired"
            )
            return False
        logger.debug(f"Released lock for {resource_key}")
        return True

    async def is_locked(self, resource_key: str) -> bool:
        client = await self._get_client()
        return bool(await client.exists(self._key(resource_key)))
