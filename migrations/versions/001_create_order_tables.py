"""
Alembic migration: Create order lifecycle schema.

Creates users, vendors and products (the collaborators orders reference),
the orders and order_items tables, and the append-only
order_status_history audit table, with enum types for the closed status
sets.

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = postgresql.ENUM(
    'customer', 'vendor', 'admin', name='user_role', create_type=False
)
vendor_status = postgresql.ENUM(
    'pending', 'approved', 'suspended', name='vendor_status', create_type=False
)
order_status = postgresql.ENUM(
    'pending', 'confirmed', 'processing', 'shipped', 'delivered', 'cancelled',
    name='order_status',
    create_type=False,
)
payment_status = postgresql.ENUM(
    'pending', 'paid', 'failed', 'refunded', name='payment_status', create_type=False
)
payment_method = postgresql.ENUM(
    'cod', 'card', 'upi', 'netbanking', name='payment_method', create_type=False
)

ENUM_TYPES = (user_role, vendor_status, order_status, payment_status, payment_method)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """
    Create order lifecycle tables.

    Orders are never hard-deleted, so foreign keys from orders use
    RESTRICT; line items and history cascade with their order.
    """
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        comment='Marketplace user accounts',
    )
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'vendors',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('business_name', sa.String(200), nullable=False),
        sa.Column('status', vendor_status, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_vendors'),
        sa.ForeignKeyConstraint(
            ['owner_user_id'],
            ['users.id'],
            name='fk_vendors_owner_user_id',
            ondelete='CASCADE',
        ),
        sa.UniqueConstraint('owner_user_id', name='uq_vendors_owner_user_id'),
        comment='Vendor profiles owned by vendor users',
    )
    op.create_index('ix_vendors_status', 'vendors', ['status'])

    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.ForeignKeyConstraint(
            ['vendor_id'],
            ['vendors.id'],
            name='fk_products_vendor_id',
            ondelete='CASCADE',
        ),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        comment='Catalog products',
    )
    op.create_index('ix_products_vendor_id', 'products', ['vendor_id'])

    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(20), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_address', postgresql.JSONB(), nullable=False),
        sa.Column('customer_snapshot', postgresql.JSONB(), nullable=False),
        sa.Column('notes', sa.String(1000), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.ForeignKeyConstraint(
            ['customer_id'],
            ['users.id'],
            name='fk_orders_customer_id',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['vendor_id'],
            ['vendors.id'],
            name='fk_orders_vendor_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint('shipping >= 0', name='ck_orders_shipping_non_negative'),
        sa.CheckConstraint('discount >= 0', name='ck_orders_discount_non_negative'),
        sa.CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        comment='Customer orders with lifecycle status',
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_vendor_id', 'orders', ['vendor_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_customer_created', 'orders', ['customer_id', 'created_at'])
    op.create_index('ix_orders_vendor_created', 'orders', ['vendor_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_title', sa.String(200), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_items_order_id',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'],
            ['products.id'],
            name='fk_order_items_product_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
        sa.CheckConstraint('total >= 0', name='ck_order_items_total_non_negative'),
        comment='Individual lines of an order',
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('from_status', order_status, nullable=False),
        sa.Column('to_status', order_status, nullable=False),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('actor_role', sa.String(20), nullable=True),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_status_history_order_id',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['changed_by'],
            ['users.id'],
            name='fk_order_status_history_changed_by',
            ondelete='SET NULL',
        ),
        comment='Order status change history for audit trail',
    )
    op.create_index(
        'ix_order_status_history_order_created',
        'order_status_history',
        ['order_id', 'created_at'],
    )


def downgrade() -> None:
    """Drop order lifecycle tables and enum types."""
    op.drop_index('ix_order_status_history_order_created', table_name='order_status_history')
    op.drop_table('order_status_history')

    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    for index_name in (
        'ix_orders_status_created',
        'ix_orders_vendor_created',
        'ix_orders_customer_created',
        'ix_orders_status',
        'ix_orders_vendor_id',
        'ix_orders_customer_id',
    ):
        op.drop_index(index_name, table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_products_vendor_id', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_vendors_status', table_name='vendors')
    op.drop_table('vendors')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
