"""initial_sync_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MIRROR_TABLES = ('wc_products', 'wc_customers', 'wc_orders')


def _mirror_columns() -> list:
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('remote_id', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('last_modified', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _create_mirror_table(name: str, *extra_columns: sa.Column) -> None:
    op.create_table(
        name,
        *_mirror_columns(),
        *extra_columns,
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'remote_id', name=f'uq_{name}_org_remote'),
    )
    op.create_index(op.f(f'ix_{name}_organization_id'), name, ['organization_id'], unique=False)
    op.create_index(op.f(f'ix_{name}_remote_id'), name, ['remote_id'], unique=False)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('organizations'):
        op.create_table(
            'organizations',
            sa.Column('id', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('settings', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )

    if not inspector.has_table('wc_products'):
        _create_mirror_table(
            'wc_products',
            sa.Column('name', sa.String(length=255), nullable=True),
            sa.Column('sku', sa.String(length=128), nullable=True),
            sa.Column('type', sa.String(length=32), nullable=True),
            sa.Column('status', sa.String(length=32), nullable=True),
            sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=True),
            sa.Column('stock_quantity', sa.Integer(), nullable=True),
        )
        op.create_index(op.f('ix_wc_products_name'), 'wc_products', ['name'], unique=False)
        op.create_index(op.f('ix_wc_products_sku'), 'wc_products', ['sku'], unique=False)

    if not inspector.has_table('wc_customers'):
        _create_mirror_table(
            'wc_customers',
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('first_name', sa.String(length=255), nullable=True),
            sa.Column('last_name', sa.String(length=255), nullable=True),
        )
        op.create_index(op.f('ix_wc_customers_email'), 'wc_customers', ['email'], unique=False)

    if not inspector.has_table('wc_orders'):
        _create_mirror_table(
            'wc_orders',
            sa.Column('number', sa.String(length=64), nullable=True),
            sa.Column('status', sa.String(length=32), nullable=True),
            sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=True),
            sa.Column('customer_id', sa.Integer(), nullable=True),
        )
        op.create_index(op.f('ix_wc_orders_status'), 'wc_orders', ['status'], unique=False)
        op.create_index(op.f('ix_wc_orders_customer_id'), 'wc_orders', ['customer_id'], unique=False)

    if not inspector.has_table('sync_status'):
        op.create_table(
            'sync_status',
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('organization_id', sa.String(length=64), nullable=False),
            sa.Column('entity_type', sa.String(length=32), nullable=False),
            sa.Column('is_syncing', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('status', sa.String(length=32), nullable=False, server_default='idle'),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('processed_items', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('last_discover_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('last_sync_time', sa.DateTime(timezone=True), nullable=True),
            sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('organization_id', 'entity_type', name='uq_sync_status_scope'),
        )
        op.create_index(op.f('ix_sync_status_organization_id'), 'sync_status', ['organization_id'], unique=False)

    if not inspector.has_table('sync_queue'):
        op.create_table(
            'sync_queue',
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('organization_id', sa.String(length=64), nullable=False),
            sa.Column('entity_type', sa.String(length=32), nullable=False),
            sa.Column('entity_id', sa.Integer(), nullable=False),
            sa.Column('operation', sa.String(length=16), nullable=False),
            sa.Column('data', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
            sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
            sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('last_error', sa.Text(), nullable=True),
            sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_sync_queue_organization_id'), 'sync_queue', ['organization_id'], unique=False)
        op.create_index(op.f('ix_sync_queue_entity_type'), 'sync_queue', ['entity_type'], unique=False)
        op.create_index('ix_sync_queue_due', 'sync_queue', ['organization_id', 'status', 'scheduled_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in ('sync_queue', 'sync_status', *MIRROR_TABLES, 'organizations'):
        if inspector.has_table(table):
            op.drop_table(table)
