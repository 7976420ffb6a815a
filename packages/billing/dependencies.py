"""
FastAPI dependency providers for billing.

Services are built per request from their collaborators; tests swap any of
these through app.dependency_overrides.
"""

from fastapi import Depends

from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.services.plan_catalog import PlanCatalog
from packages.billing.services.quota_service import QuotaService
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.webhook_processor import WebhookProcessor

_catalog = PlanCatalog()


def get_plan_catalog() -> PlanCatalog:
    return _catalog


def get_payment_provider_dependency() -> PaymentProviderInterface:
    return get_payment_provider()


def get_lock_provider_dependency() -> DistributedLockInterface:
    return get_lock_provider()


def get_subscription_service(
    payment: PaymentProviderInterface = Depends(get_payment_provider_dependency),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> SubscriptionService:
    return SubscriptionService(payment=payment, catalog=catalog)


def get_quota_service(
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> QuotaService:
    return QuotaService(catalog=catalog)


def get_webhook_processor(
    lock_provider: DistributedLockInterface = Depends(get_lock_provider_dependency),
) -> WebhookProcessor:
    return WebhookProcessor(lock_provider=lock_provider)
