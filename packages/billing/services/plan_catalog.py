"""Compiled-in plan catalog."""

from typing import Iterable, Optional

from packages.billing.exceptions import PlanNotFoundError
from packages.billing.models.domain.enums import PlanId
from packages.billing.models.domain.plans import Plan, UNLIMITED
from packages.billing.models.domain.subscription import Subscription

DEFAULT_PLANS = (
    Plan(
        id=PlanId.FREE.value,
        name="Free",
        max_resource_count=3,
        max_storage_mb=100,
        features=frozenset({"basic_2d", "basic_3d"}),
    ),
    Plan(
        id=PlanId.PRO.value,
        name="Pro",
        max_resource_count=50,
        max_storage_mb=5000,
        features=frozenset(
            {"basic_2d", "basic_3d", "advanced_2d", "advanced_3d", "export_pdf"}
        ),
    ),
    Plan(
        id=PlanId.ENTERPRISE.value,
        name="Enterprise",
        max_resource_count=UNLIMITED,
        max_storage_mb=UNLIMITED,
        features=frozenset({"all"}),
    ),
)


class PlanCatalog:
    """
    Read-only lookup over the plans this deployment sells.

    The catalog always contains the reserved free plan; accounts without a
    subscription row resolve to it.
    """

    def __init__(self, plans: Iterable[Plan] = DEFAULT_PLANS):
        self._plans = {plan.id: plan for plan in plans}
        if PlanId.FREE.value not in self._plans:
            raise ValueError("Plan catalog must include the free plan")

    @property
    def free_plan(self) -> Plan:
        return self._plans[PlanId.FREE.value]

    def lookup(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def list_plans(self) -> list[Plan]:
        return list(self._plans.values())

    def resolve_plan(self, subscription: Optional[Subscription]) -> Plan:
        """Effective plan for an account; no subscription means free."""
        if subscription is None:
            return self.free_plan
        plan = self._plans.get(subscription.plan_id)
        if plan is None:
            # Plan retired from the catalog; fall back rather than lock the account out
            return self.free_plan
        return plan
