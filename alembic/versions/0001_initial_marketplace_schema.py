"""Create marketplace tables: users, assets, orders, payments, downloads.

Revision ID: 0001_initial_marketplace_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '0001_initial_marketplace_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auth0_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), server_default='CLIENT', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_users_auth0_id', 'users', ['auth0_id'], unique=True)

    op.create_table(
        'assets',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('preview_urls', sa.JSON(), nullable=False),
        sa.Column('source_file_key', sa.String(512), nullable=False),
        sa.Column('downloads', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', sa.String(20), server_default='ACTIVE', nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_assets_price_non_negative'),
    )
    op.create_index('ix_assets_vendor_id', 'assets', ['vendor_id'])
    op.create_index('ix_assets_category', 'assets', ['category'])

    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('asset_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assets.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('stripe_session_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_asset_id', 'orders', ['asset_id'])
    op.create_index('ix_orders_stripe_session_id', 'orders', ['stripe_session_id'])
    op.create_index('ix_orders_user_asset_status', 'orders', ['user_id', 'asset_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('stripe_payment_id', sa.String(255), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])

    # At most one SUCCEEDED / REFUNDED payment per order
    op.create_index(
        'uq_payments_order_succeeded',
        'payments',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text("status = 'SUCCEEDED'"),
    )
    op.create_index(
        'uq_payments_order_refunded',
        'payments',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text("status = 'REFUNDED'"),
    )

    op.create_table(
        'downloads',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('asset_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('assets.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_downloads_asset_id', 'downloads', ['asset_id'])

    # Rate-limit window lookups
    op.create_index(
        'ix_downloads_user_asset_created',
        'downloads',
        ['user_id', 'asset_id', 'created_at'],
    )


def downgrade() -> None:
    op.drop_table('downloads')
    op.drop_index('uq_payments_order_refunded', table_name='payments')
    op.drop_index('uq_payments_order_succeeded', table_name='payments')
    op.drop_table('payments')
    op.drop_table('orders')
    op.drop_table('assets')
    op.drop_table('users')
