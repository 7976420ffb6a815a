"""
Service for account-facing subscription operations.

Outbound provider calls happen first; the local row is only written once
the provider has confirmed. Provider errors and timeouts propagate so local
state never runs ahead of the provider.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.accounts.repositories.account_repository import AccountRepository
from packages.billing.exceptions import (
    AccountNotFoundError,
    ActiveSubscriptionConflictError,
    CustomerNotFoundError,
    SubscriptionNotFoundError,
)
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.models.domain.plans import Plan
from packages.billing.models.domain.subscription import (
    CreateSubscriptionResult,
    Subscription,
    SubscriptionUpsertModel,
)
from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.billing.services.plan_catalog import PlanCatalog

logger = get_logger(__name__)


class SubscriptionService:
    """Service for subscription management."""

    def __init__(
        self,
        payment: PaymentProviderInterface,
        catalog: Optional[PlanCatalog] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        account_repo: Optional[AccountRepository] = None,
    ):
        self.payment = payment
        self.catalog = catalog or PlanCatalog()
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.account_repo = account_repo or AccountRepository()

    def list_plans(self) -> list[Plan]:
        return self.catalog.list_plans()

    @trace_span
    async def get_current_plan(
        self, account_id: int
    ) -> tuple[Plan, Optional[Subscription]]:
        """Effective plan and the backing row; accounts without a row are on free."""
        subscription = await self.subscription_repo.get_by_account_id(account_id)
        return self.catalog.resolve_plan(subscription), subscription

    async def _get_or_create_customer(self, account) -> str:
        if account.external_customer_id:
            logger.info(
                "Reusing existing billing customer",
                extra={
                    "account_id": account.id,
                    "customer_id": account.external_customer_id,
                },
            )
            return account.external_customer_id

        customer_id = await self.payment.create_customer(
            account_id=account.id, email=account.email, name=account.name
        )
        await self.account_repo.set_external_customer_id(account.id, customer_id)
        return customer_id

    @trace_span
    async def create_subscription(
        self,
        account_id: int,
        plan_id: str,
        payment_method_id: Optional[str] = None,
    ) -> CreateSubscriptionResult:
        """
        Subscribe an account to a plan.

        Raises:
            PlanNotFoundError: Unknown plan
            AccountNotFoundError: Unknown account
            ActiveSubscriptionConflictError: A live paid subscription exists;
                it has to be cancelled before switching plans
            PaymentProviderError: The provider rejected a call
            PaymentProviderTimeoutError: The provider did not answer in time
        """
        plan = self.catalog.lookup(plan_id)

        account = await self.account_repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        existing = await self.subscription_repo.get_by_account_id(account_id)
        if existing is not None and existing.is_paid_and_live():
            logger.info(
                f"Account {account_id} already subscribed to {existing.plan_id}",
                extra={
                    "account_id": account_id,
                    "current_plan": existing.plan_id,
                    "requested_plan": plan.id,
                },
            )
            raise ActiveSubscriptionConflictError(account_id, existing.plan_id)

        if plan.is_free:
            subscription = await self.subscription_repo.upsert(
                SubscriptionUpsertModel(
                    account_id=account_id,
                    plan_id=plan.id,
                    status=SubscriptionStatus.ACTIVE,
                )
            )
            logger.info(
                f"Account {account_id} subscribed to free plan",
                extra={"account_id": account_id},
            )
            return CreateSubscriptionResult(
                plan_id=subscription.plan_id, status=subscription.status
            )

        customer_id = await self._get_or_create_customer(account)
        if payment_method_id:
            await self.payment.attach_payment_method(customer_id, payment_method_id)

        provider_subscription = await self.payment.create_subscription(
            customer_id=customer_id,
            plan=plan,
            account_id=account_id,
            payment_method_id=payment_method_id,
        )

        subscription = await self.subscription_repo.upsert(
            SubscriptionUpsertModel(
                account_id=account_id,
                plan_id=plan.id,
                status=provider_subscription.status.to_subscription_status(),
                external_customer_id=customer_id,
                external_subscription_id=provider_subscription.external_subscription_id,
                current_period_start=provider_subscription.current_period_start,
                current_period_end=provider_subscription.current_period_end,
            )
        )

        logger.info(
            f"Created {plan.id} subscription for account {account_id}",
            extra={
                "account_id": account_id,
                "plan_id": plan.id,
                "external_subscription_id": subscription.external_subscription_id,
                "status": subscription.status.value,
            },
        )

        return CreateSubscriptionResult(
            plan_id=subscription.plan_id,
            status=subscription.status,
            external_subscription_id=subscription.external_subscription_id,
            client_secret=provider_subscription.client_secret,
        )

    async def _get_paid_subscription(self, account_id: int) -> Subscription:
        subscription = await self.subscription_repo.get_by_account_id(account_id)
        if subscription is None or not subscription.external_subscription_id:
            raise SubscriptionNotFoundError(account_id)
        return subscription

    async def _set_cancel_at_period_end(
        self, account_id: int, cancel_at_period_end: bool
    ) -> Subscription:
        subscription = await self._get_paid_subscription(account_id)
        if subscription.cancel_at_period_end == cancel_at_period_end:
            logger.info(
                f"Subscription for account {account_id} already has "
                f"cancel_at_period_end={cancel_at_period_end}",
                extra={"account_id": account_id},
            )
            return subscription

        await self.payment.update_subscription_flags(
            subscription.external_subscription_id, cancel_at_period_end
        )
        updated = await self.subscription_repo.set_cancel_at_period_end(
            account_id, cancel_at_period_end
        )

        logger.info(
            f"Set cancel_at_period_end={cancel_at_period_end} for account {account_id}",
            extra={
                "account_id": account_id,
                "external_subscription_id": subscription.external_subscription_id,
            },
        )
        return updated

    @trace_span
    async def cancel_subscription(self, account_id: int) -> Subscription:
        """Schedule cancellation at period end. No-op when already scheduled."""
        return await self._set_cancel_at_period_end(account_id, True)

    @trace_span
    async def reactivate_subscription(self, account_id: int) -> Subscription:
        """Undo a scheduled cancellation. No-op when none is scheduled."""
        return await self._set_cancel_at_period_end(account_id, False)

    @trace_span
    async def create_billing_portal_session(
        self, account_id: int, return_url: Optional[str] = None
    ) -> str:
        """Create a billing portal session for the account's provider customer."""
        account = await self.account_repo.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        customer_id = account.external_customer_id
        if not customer_id:
            subscription = await self.subscription_repo.get_by_account_id(account_id)
            customer_id = subscription.external_customer_id if subscription else None
        if not customer_id:
            raise CustomerNotFoundError(account_id)

        portal_url = await self.payment.create_billing_portal_session(
            customer_id=customer_id,
            return_url=return_url or f"{settings.frontend_url}/billing",
        )

        logger.info(
            f"Created portal session for account {account_id}",
            extra={"account_id": account_id},
        )
        return portal_url
