import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from .interface import DistributedLockInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


@dataclass
class _HeldLock:
    token: str
    expires_at: float

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class MemoryLock(DistributedLockInterface):
    """
    In-process lock provider.

    Only serializes callers within one process; used for local development
    and tests where Redis is not available.
    """

    def __init__(self):
        self._locks: Dict[str, _HeldLock] = {}
        logger.info("Memory lock provider initialized")

    def _live(self, resource_key: str) -> Optional[_HeldLock]:
        held = self._locks.get(resource_key)
        if held is not None and held.is_expired():
            del self._locks[resource_key]
            return None
        return held

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        if self._live(resource_key) is not None:
            return None
        token = str(uuid.uuid4())
        self._locks[resource_key] = _HeldLock(
            token=token, expires_at=time.monotonic() + timeout_seconds
        )
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        held = self._live(resource_key)
        if held is None or held.token != lock_token:
            logger.warning(
                f"Cannot release lock for {resource_key} - token mismatch or lock expired"
            )
            return False
        del self._locks[resource_key]
        return True

    async def is_locked(self, resource_key: str) -> bool:
        return self._live(resource_key) is not None
