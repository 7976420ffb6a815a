"""
Database entity for subscriptions.
"""

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Account subscription database entity.

    One-to-one with accounts; rows are mutated in place and never deleted.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    account_id = Column(
        BigIntegerType,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    plan_id = Column(String(50), nullable=False, index=True)  # free, pro, enterprise
    status = Column(
        String(50), nullable=False, index=True
    )  # trialing, active, past_due, unpaid, canceled

    # Provider ids; the subscription id is cleared on downgrade to free
    external_customer_id = Column(String(255), nullable=True, index=True)
    external_subscription_id = Column(
        String(255), nullable=True, unique=True, index=True
    )

    # Billing cycle
    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    cancel_at_period_end = Column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # Provider timestamp of the last applied webhook, guards against stale events
    last_event_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("idx_subscription_status_plan", "status", "plan_id"),)
