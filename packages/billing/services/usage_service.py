"""
Service for computing account usage.
"""

from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.usage import UsageSnapshot
from packages.resources.repositories.resource_repository import ResourceRepository

logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024


class UsageService:
    """
    Computes usage from live resources on every call.

    Nothing is cached so quota decisions always see committed state (or the
    caller's open transaction).
    """

    def __init__(self, resource_repo: Optional[ResourceRepository] = None):
        self.resource_repo = resource_repo or ResourceRepository()

    @trace_span
    async def compute_usage(self, account_id: int) -> UsageSnapshot:
        totals = await self.resource_repo.get_usage_totals(account_id)
        snapshot = UsageSnapshot(
            resource_count=totals.resource_count,
            storage_mb=totals.storage_bytes / BYTES_PER_MB,
        )
        logger.debug(
            f"Usage for account {account_id}",
            extra={
                "account_id": account_id,
                "resource_count": snapshot.resource_count,
                "storage_mb": snapshot.storage_mb,
            },
        )
        return snapshot
