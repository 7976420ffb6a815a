"""create_billing_tables

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2026-10-19 09:12:44.118203

Tables:
- accounts: account identity plus the billing provider customer id
- resources: account-owned documents counted against plan quotas
- subscriptions: one row per account mirroring the provider subscription
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1e9a7b2d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create accounts, resources and subscriptions."""

    op.create_table(
        'accounts',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('external_customer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accounts_id', 'accounts', ['id'])
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)
    op.create_index('ix_accounts_external_customer_id', 'accounts', ['external_customer_id'], unique=True)

    op.create_table(
        'resources',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('account_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_resources_id', 'resources', ['id'])
    # Usage aggregation filters on both columns
    op.create_index('ix_resources_account_id_is_archived', 'resources', ['account_id', 'is_archived'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('account_id', sa.BigInteger(), nullable=False),

        sa.Column('plan_id', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),

        # External platform IDs (null on the free plan)
        sa.Column('external_customer_id', sa.String(255), nullable=True),
        sa.Column('external_subscription_id', sa.String(255), nullable=True),

        # Billing cycle
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default='false'),

        # Provider timestamp of the last applied webhook
        sa.Column('last_event_at', sa.DateTime(timezone=True), nullable=True),

        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
    )

    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    # Upserts conflict on account_id
    op.create_index('ix_subscriptions_account_id', 'subscriptions', ['account_id'], unique=True)
    op.create_index('ix_subscriptions_plan_id', 'subscriptions', ['plan_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('idx_subscription_status_plan', 'subscriptions', ['status', 'plan_id'])
    op.create_index('ix_subscriptions_external_customer_id', 'subscriptions', ['external_customer_id'])
    op.create_index('ix_subscriptions_external_subscription_id', 'subscriptions', ['external_subscription_id'], unique=True)


def downgrade() -> None:
    """Drop billing tables."""
    op.drop_table('subscriptions')
    op.drop_table('resources')
    op.drop_table('accounts')
