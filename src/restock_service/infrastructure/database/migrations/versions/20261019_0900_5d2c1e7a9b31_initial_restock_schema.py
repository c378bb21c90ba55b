"""Initial restock schema

Revision ID: 5d2c1e7a9b31
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5d2c1e7a9b31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create subscriptions table
    op.create_table('subscriptions',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('account_id', sa.String(length=255), nullable=False),
    sa.Column('contact', sa.String(length=32), nullable=False),
    sa.Column('product_id', sa.String(length=64), nullable=True),
    sa.Column('variant_id', sa.String(length=64), nullable=True),
    sa.Column('inventory_item_id', sa.String(length=64), nullable=True),
    sa.Column('product_title', sa.String(length=500), nullable=True),
    sa.Column('product_url', sa.String(length=2048), nullable=True),
    sa.Column('awaiting_reply', sa.Boolean(), nullable=False),
    sa.Column('template_sent_at', sa.DateTime(), nullable=True),
    sa.Column('last_inbound_at', sa.DateTime(), nullable=True),
    sa.Column('dispatch_token', sa.String(length=36), nullable=True),
    sa.Column('dispatch_claimed_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('product_id IS NOT NULL OR variant_id IS NOT NULL', name='ck_subscriptions_product_or_variant'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('account_id', 'contact', 'variant_id', name='uq_subscriptions_account_contact_variant'),
    schema='restock'
    )
    op.create_index('uq_subscriptions_account_contact_product', 'subscriptions', ['account_id', 'contact', 'product_id'], unique=True, schema='restock', postgresql_where=sa.text('variant_id IS NULL'))
    op.create_index('ix_subscriptions_inventory_item', 'subscriptions', ['account_id', 'inventory_item_id', 'created_at'], unique=False, schema='restock')
    op.create_index('ix_subscriptions_awaiting', 'subscriptions', ['contact', 'awaiting_reply', 'template_sent_at'], unique=False, schema='restock')
    op.create_index(op.f('ix_restock_subscriptions_account_id'), 'subscriptions', ['account_id'], unique=False, schema='restock')
    op.create_index(op.f('ix_restock_subscriptions_contact'), 'subscriptions', ['contact'], unique=False, schema='restock')

    # Create accounts table
    op.create_table('accounts',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('account_id', sa.String(length=255), nullable=False),
    sa.Column('access_token', sa.String(length=255), nullable=True),
    sa.Column('contact_email', sa.String(length=320), nullable=True),
    sa.Column('plan', sa.String(length=32), nullable=False),
    sa.Column('trial_started_at', sa.DateTime(), nullable=True),
    sa.Column('trial_ends_at', sa.DateTime(), nullable=True),
    sa.Column('alerts_used_this_month', sa.Integer(), nullable=False),
    sa.Column('alert_limit_reached', sa.Boolean(), nullable=False),
    sa.Column('billing_customer_id', sa.String(length=255), nullable=True),
    sa.Column('uninstalled_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    schema='restock'
    )
    op.create_index(op.f('ix_restock_accounts_account_id'), 'accounts', ['account_id'], unique=True, schema='restock')

    # Create alerts table
    op.create_table('alerts',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('account_id', sa.String(length=255), nullable=False),
    sa.Column('product_id', sa.String(length=64), nullable=False),
    sa.Column('variant_id', sa.String(length=64), nullable=False),
    sa.Column('inventory_item_id', sa.String(length=64), nullable=True),
    sa.Column('contact', sa.String(length=32), nullable=False),
    sa.Column('sent', sa.Boolean(), nullable=False),
    sa.Column('sent_at', sa.DateTime(), nullable=True),
    sa.Column('last_delivery_id', sa.String(length=64), nullable=True),
    sa.Column('dispatch_token', sa.String(length=36), nullable=True),
    sa.Column('dispatch_claimed_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('account_id', 'product_id', 'variant_id', 'contact', name='uq_alerts_account_product_variant_contact'),
    schema='restock'
    )
    op.create_index('ix_alerts_pending_variant', 'alerts', ['account_id', 'variant_id', 'sent', 'created_at'], unique=False, schema='restock')
    op.create_index('ix_alerts_pending_inventory_item', 'alerts', ['account_id', 'inventory_item_id', 'sent'], unique=False, schema='restock')
    op.create_index(op.f('ix_restock_alerts_account_id'), 'alerts', ['account_id'], unique=False, schema='restock')
    op.create_index(op.f('ix_restock_alerts_contact'), 'alerts', ['contact'], unique=False, schema='restock')

    # Create webhook_receipts table
    op.create_table('webhook_receipts',
    sa.Column('delivery_id', sa.String(length=255), nullable=False),
    sa.Column('topic', sa.String(length=255), nullable=True),
    sa.Column('account_id', sa.String(length=255), nullable=True),
    sa.Column('received_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('delivery_id'),
    schema='restock'
    )
    op.create_index('ix_webhook_receipts_received_at', 'webhook_receipts', ['received_at'], unique=False, schema='restock')


def downgrade() -> None:
    op.drop_index('ix_webhook_receipts_received_at', table_name='webhook_receipts', schema='restock')
    op.drop_table('webhook_receipts', schema='restock')

    op.drop_index(op.f('ix_restock_alerts_contact'), table_name='alerts', schema='restock')
    op.drop_index(op.f('ix_restock_alerts_account_id'), table_name='alerts', schema='restock')
    op.drop_index('ix_alerts_pending_inventory_item', table_name='alerts', schema='restock')
    op.drop_index('ix_alerts_pending_variant', table_name='alerts', schema='restock')
    op.drop_table('alerts', schema='restock')

    op.drop_index(op.f('ix_restock_accounts_account_id'), table_name='accounts', schema='restock')
    op.drop_table('accounts', schema='restock')

    op.drop_index(op.f('ix_restock_subscriptions_contact'), table_name='subscriptions', schema='restock')
    op.drop_index(op.f('ix_restock_subscriptions_account_id'), table_name='subscriptions', schema='restock')
    op.drop_index('ix_subscriptions_awaiting', table_name='subscriptions', schema='restock')
    op.drop_index('ix_subscriptions_inventory_item', table_name='subscriptions', schema='restock')
    op.drop_index('uq_subscriptions_account_contact_product', table_name='subscriptions', schema='restock')
    op.drop_table('subscriptions', schema='restock')
