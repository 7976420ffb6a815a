"""
Repository for subscription management.

Webhook-driven mutations are single keyed UPDATEs guarded by the provider
timestamp of the last applied event, so a late or replayed notification
cannot overwrite newer state.
"""

from typing import Any, Optional
from datetime import datetime, timedelta, timezone
from sqlalchemy import select, update, func, or_, case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionMutation,
    SubscriptionUpsertModel,
)
from packages.billing.models.domain.enums import (
    MutationResult,
    PlanId,
    SubscriptionStatus,
)
from common.core.otel_axiom_exporter import trace_span, get_logger

logger = get_logger(__name__)

DEFAULT_PERIOD = timedelta(days=30)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Subscription upsert not supported on {dialect}")


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing account subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    async def _fetch_by_id(
        self, session: AsyncSession, id: int
    ) -> Optional[SubscriptionEntity]:
        result = await session.execute(
            select(SubscriptionEntity)
            .where(SubscriptionEntity.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @trace_span
    async def get_by_account_id(self, account_id: int) -> Optional[Subscription]:
        """Get the subscription row for an account, if any."""
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.account_id == account_id
                )
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def get_by_external_subscription_id(
        self, external_subscription_id: str
    ) -> Optional[Subscription]:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity).where(
                    SubscriptionEntity.external_subscription_id
                    == external_subscription_id
                )
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None

    @trace_span
    async def upsert(self, upsert_model: SubscriptionUpsertModel) -> Subscription:
        """
        Create or replace the account's subscription in one statement.

        On conflict the plan and status are replaced and the cancel flag is
        reset. Incoming null external ids keep the stored ones, except that
        moving to the free plan always clears the external subscription id.
        The period is only replaced when both bounds are supplied.
        """
        now = datetime.now(timezone.utc)
        has_period = (
            upsert_model.current_period_start is not None
            and upsert_model.current_period_end is not None
        )
        period_start = (
            _utc(upsert_model.current_period_start) if has_period else now
        )
        period_end = (
            _utc(upsert_model.current_period_end)
            if has_period
            else now + DEFAULT_PERIOD
        )
        is_free = upsert_model.plan_id == PlanId.FREE.value

        values = {
            "account_id": upsert_model.account_id,
            "plan_id": upsert_model.plan_id,
            "status": upsert_model.status.value,
            "external_customer_id": upsert_model.external_customer_id,
            "external_subscription_id": (
                None if is_free else upsert_model.external_subscription_id
            ),
            "current_period_start": period_start,
            "current_period_end": period_end,
            "cancel_at_period_end": False,
            "created_at": now,
            "updated_at": now,
        }

        async with self._get_session() as session:
            insert = _insert_for(session)
            stmt = insert(SubscriptionEntity).values(**values)
            excluded = stmt.excluded

            set_: dict[str, Any] = {
                "plan_id": excluded.plan_id,
                "status": excluded.status,
                "cancel_at_period_end": False,
                "external_customer_id": func.coalesce(
                    excluded.external_customer_id,
                    SubscriptionEntity.external_customer_id,
                ),
                "external_subscription_id": (
                    None
                    if is_free
                    else func.coalesce(
                        excluded.external_subscription_id,
                        SubscriptionEntity.external_subscription_id,
                    )
                ),
                "updated_at": now,
            }
            if has_period:
                set_["current_period_start"] = excluded.current_period_start
                set_["current_period_end"] = excluded.current_period_end

            stmt = stmt.on_conflict_do_update(
                index_elements=[SubscriptionEntity.account_id], set_=set_
            )
            await session.execute(stmt)

            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.account_id == upsert_model.account_id)
                .execution_options(populate_existing=True)
            )
            db_subscription = result.scalar_one()

        logger.info(
            f"Upserted subscription for account {upsert_model.account_id}",
            extra={
                "account_id": upsert_model.account_id,
                "plan_id": upsert_model.plan_id,
                "status": upsert_model.status.value,
            },
        )
        return self._entity_to_domain(db_subscription)

    async def _guarded_update(
        self,
        external_subscription_id: str,
        values: dict[str, Any],
        event_at: Optional[datetime],
    ) -> SubscriptionMutation:
        async with self._get_session() as session:
            result = await session.execute(
                select(SubscriptionEntity.id).where(
                    SubscriptionEntity.external_subscription_id
                    == external_subscription_id
                )
            )
            row_id = result.scalar_one_or_none()
            if row_id is None:
                return SubscriptionMutation(result=MutationResult.NOT_FOUND)

            values = {**values, "updated_at": datetime.now(timezone.utc)}
            stmt = update(SubscriptionEntity).where(
                SubscriptionEntity.id == row_id,
                SubscriptionEntity.external_subscription_id
                == external_subscription_id,
            )
            if event_at is not None:
                event_at = _utc(event_at)
                stmt = stmt.where(
                    or_(
                        SubscriptionEntity.last_event_at.is_(None),
                        SubscriptionEntity.last_event_at <= event_at,
                    )
                )
                values["last_event_at"] = event_at

            update_result = await session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            await session.flush()

            db_subscription = await self._fetch_by_id(session, row_id)
            if update_result.rowcount:
                outcome = MutationResult.APPLIED
            elif (
                db_subscription is None
                or db_subscription.external_subscription_id
                != external_subscription_id
            ):
                # Detached between lookup and update
                outcome = MutationResult.NOT_FOUND
            else:
                outcome = MutationResult.STALE

            return SubscriptionMutation(
                result=outcome,
                subscription=(
                    self._entity_to_domain(db_subscription)
                    if db_subscription
                    else None
                ),
            )

    @trace_span
    async def update_status(
        self,
        external_subscription_id: str,
        status: SubscriptionStatus,
        event_at: Optional[datetime] = None,
    ) -> SubscriptionMutation:
        return await self._guarded_update(
            external_subscription_id, {"status": status.value}, event_at
        )

    @trace_span
    async def mark_payment_succeeded(
        self,
        external_subscription_id: str,
        event_at: Optional[datetime] = None,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
    ) -> SubscriptionMutation:
        """
        Mark the subscription active and extend its period.

        The period end only ever moves forward; an invoice for an older
        period leaves the stored period untouched.
        """
        values: dict[str, Any] = {"status": SubscriptionStatus.ACTIVE.value}
        if period_end is not None:
            period_end = _utc(period_end)
            advances = or_(
                SubscriptionEntity.current_period_end.is_(None),
                SubscriptionEntity.current_period_end < period_end,
            )
            values["current_period_end"] = case(
                (advances, period_end), else_=SubscriptionEntity.current_period_end
            )
            if period_start is not None:
                values["current_period_start"] = case(
                    (advances, _utc(period_start)),
                    else_=SubscriptionEntity.current_period_start,
                )
        return await self._guarded_update(external_subscription_id, values, event_at)

    @trace_span
    async def downgrade_to_free(
        self,
        external_subscription_id: str,
        event_at: Optional[datetime] = None,
    ) -> SubscriptionMutation:
        """Revert to the free plan in place and detach the provider subscription."""
        return await self._guarded_update(
            external_subscription_id,
            {
                "plan_id": PlanId.FREE.value,
                "status": SubscriptionStatus.ACTIVE.value,
                "external_subscription_id": None,
                "cancel_at_period_end": False,
            },
            event_at,
        )

    @trace_span
    async def set_cancel_at_period_end(
        self, account_id: int, cancel_at_period_end: bool
    ) -> Optional[Subscription]:
        async with self._get_session() as session:
            await session.execute(
                update(SubscriptionEntity)
                .where(SubscriptionEntity.account_id == account_id)
                .values(
                    cancel_at_period_end=cancel_at_period_end,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            result = await session.execute(
                select(SubscriptionEntity)
                .where(SubscriptionEntity.account_id == account_id)
                .execution_options(populate_existing=True)
            )
            db_subscription = result.scalar_one_or_none()
            return self._entity_to_domain(db_subscription) if db_subscription else None
