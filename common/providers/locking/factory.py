from typing import Optional

from common.core.config import settings
from common.core.constants import LockProviderType
from common.core.otel_axiom_exporter import get_logger

from .interface import DistributedLockInterface
from .memory_lock import MemoryLock
from .redis_lock import RedisLock

logger = get_logger(__name__)

# Global instance
_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """
    Get the configured lock provider.

    Selected by settings.lock_provider; the instance is shared per process so
    the in-memory backend serializes all callers against one table.
    """
    global _lock_provider

    if _lock_provider is None:
        if settings.lock_provider == LockProviderType.MEMORY:
            _lock_provider = MemoryLock()
        else:
            _lock_provider = RedisLock()
        logger.info(f"Initialized {settings.lock_provider.value} lock provider")

    return _lock_provider


async def close_lock_provider() -> None:
    """Release the shared provider's connections, if one was created."""
    global _lock_provider

    if isinstance(_lock_provider, RedisLock):
        await _lock_provider.close()
    _lock_provider = None
