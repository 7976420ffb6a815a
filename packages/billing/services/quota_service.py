"""
Service for quota enforcement and checking.

Quotas compare live usage against the effective plan's limits. A limit of -1
means unlimited; otherwise usage equal to the limit already blocks the next
action.
"""

import math
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import QuotaExceededError
from packages.billing.models.domain.enums import QuotaAction
from packages.billing.models.domain.plans import Plan, UNLIMITED
from packages.billing.models.domain.usage import (
    QuotaCheck,
    QuotaStatus,
    QuotaUsage,
    UsageSnapshot,
)
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.plan_catalog import PlanCatalog
from packages.billing.services.usage_service import UsageService
from packages.resources.repositories.resource_repository import ResourceRepository

logger = get_logger(__name__)


def _available(used: float, limit: int) -> int:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, math.floor(limit - used))


def _whole(value: float) -> int:
    # Half-up, so 2.5 MB shows as 3
    return math.floor(value + 0.5)


class QuotaService:
    """Service for quota enforcement."""

    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        usage_service: Optional[UsageService] = None,
        resource_repo: Optional[ResourceRepository] = None,
    ):
        self.catalog = catalog or PlanCatalog()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.resource_repo = resource_repo or ResourceRepository()
        self.usage_service = usage_service or UsageService(self.resource_repo)

    async def _resolve(self, account_id: int) -> tuple[Plan, UsageSnapshot]:
        subscription = await self.subscription_repo.get_by_account_id(account_id)
        plan = self.catalog.resolve_plan(subscription)
        usage = await self.usage_service.compute_usage(account_id)
        return plan, usage

    def _evaluate(
        self, plan: Plan, usage: UsageSnapshot, action: QuotaAction
    ) -> QuotaCheck:
        if action == QuotaAction.CREATE_RESOURCE:
            current = usage.resource_count
            limit = plan.max_resource_count
            if limit == UNLIMITED or current < limit:
                return QuotaCheck(allowed=True, current=current, limit=limit)
            return QuotaCheck(
                allowed=False,
                current=current,
                limit=limit,
                reason=f"Resource limit reached ({limit} resources)",
            )

        if action == QuotaAction.UPLOAD_ASSET:
            limit = plan.max_storage_mb
            current = _whole(usage.storage_mb)
            if limit == UNLIMITED or usage.storage_mb < limit:
                return QuotaCheck(allowed=True, current=current, limit=limit)
            return QuotaCheck(
                allowed=False,
                current=current,
                limit=limit,
                reason=f"Storage limit reached ({limit} MB)",
            )

        raise ValueError(f"Unsupported quota action: {action}")

    @trace_span
    async def check(self, account_id: int, action: QuotaAction) -> QuotaCheck:
        """Whether the account may perform one more action of this kind."""
        plan, usage = await self._resolve(account_id)
        return self._evaluate(plan, usage, action)

    @trace_span
    async def enforce(self, account_id: int, action: QuotaAction) -> QuotaCheck:
        """
        Check the quota and fail when the action is not allowed.

        Raises:
            QuotaExceededError: Carries the reason and current/limit for display
        """
        result = await self.check(account_id, action)
        if not result.allowed:
            logger.warning(
                f"Account {account_id} exceeded {action.value} quota",
                extra={
                    "account_id": account_id,
                    "action": action.value,
                    "current": result.current,
                    "limit": result.limit,
                },
            )
            raise QuotaExceededError(
                reason=result.reason,
                current=result.current,
                limit=result.limit,
                action=action.value,
            )
        return result

    @trace_span
    async def get_quota_status(self, account_id: int) -> QuotaStatus:
        """Usage against limits for display. Not a gate."""
        plan, usage = await self._resolve(account_id)
        return QuotaStatus(
            plan=plan.id,
            quotas={
                "resource": QuotaUsage(
                    used=usage.resource_count,
                    limit=plan.max_resource_count,
                    available=_available(
                        usage.resource_count, plan.max_resource_count
                    ),
                ),
                "storage": QuotaUsage(
                    used=_whole(usage.storage_mb),
                    limit=plan.max_storage_mb,
                    available=_available(usage.storage_mb, plan.max_storage_mb),
                ),
            },
            features=sorted(plan.features),
        )

    @asynccontextmanager
    async def guard(
        self, account_id: int, action: QuotaAction
    ) -> AsyncGenerator[QuotaCheck, None]:
        """
        Enforce a quota and hold it for the caller's write.

        Opens a transaction, takes the account's advisory lock and enforces
        the quota. The caller creates the resource inside the block; the
        check and the write commit together, and concurrent guards for the
        same account wait on the lock.

        Example:
            async with quota_service.guard(account_id, QuotaAction.CREATE_RESOURCE):
                await resource_repo.create(ResourceCreateModel(...))
        """
        async with transaction():
            await self.resource_repo.acquire_account_quota_lock(account_id)
            result = await self.enforce(account_id, action)
            yield result
