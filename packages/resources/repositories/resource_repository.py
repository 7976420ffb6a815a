"""
Repository for account-owned resources.

Billing only needs aggregates over these rows; full CRUD lives with the
resource owners.
"""

from sqlalchemy import select, func, text

from common.repositories.base import BaseRepository
from packages.resources.models.database.resource import ResourceEntity
from packages.resources.models.domain.resource import Resource, ResourceUsageTotals
from common.core.otel_axiom_exporter import trace_span, get_logger

logger = get_logger(__name__)


class ResourceRepository(BaseRepository[ResourceEntity, Resource]):
    def __init__(self):
        super().__init__(ResourceEntity, Resource)

    @trace_span
    async def get_usage_totals(self, account_id: int) -> ResourceUsageTotals:
        """
        Count live resources and sum their payload length in bytes.

        Archived resources do not count against quotas.
        """
        async with self._get_session() as session:
            result = await session.execute(
                select(
                    func.count(ResourceEntity.id),
                    func.coalesce(func.sum(func.length(ResourceEntity.payload)), 0),
                ).where(
                    ResourceEntity.account_id == account_id,
                    ResourceEntity.is_archived == False,  # noqa
                )
            )
            count, storage_bytes = result.one()
            return ResourceUsageTotals(
                resource_count=count or 0, storage_bytes=int(storage_bytes or 0)
            )

    @trace_span
    async def acquire_account_quota_lock(self, account_id: int) -> None:
        """
        Acquire a transaction-scoped advisory lock for quota operations.

        Serializes quota check + resource create for the same account. The
        lock is released when the surrounding transaction commits or rolls
        back. Only PostgreSQL has advisory locks; other dialects skip it.
        """
        async with self._get_session() as session:
            if session.get_bind().dialect.name != "postgresql":
                logger.debug(
                    f"Skipping quota lock for account {account_id} "
                    f"on {session.get_bind().dialect.name}"
                )
                return
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:account_id)"),
                {"account_id": account_id},
            )
