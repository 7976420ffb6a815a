"""
Plans API routes.

Public endpoint for retrieving available subscription plans.
"""

from fastapi import APIRouter, Depends

from packages.billing.dependencies import get_plan_catalog
from packages.billing.models.schemas.billing import PlanResponse, PlansResponse
from packages.billing.services.plan_catalog import PlanCatalog

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans(catalog: PlanCatalog = Depends(get_plan_catalog)):
    """
    Get all available subscription plans.

    Public (no auth required) for pricing pages. Limits of -1 are unlimited.
    """
    return PlansResponse(
        plans=[PlanResponse.from_plan(plan) for plan in catalog.list_plans()]
    )
