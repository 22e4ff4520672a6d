"""
Alembic migration: Initial storefront schema.

Creates users, catalog and cart tables, orders with their items and
status history, discount codes with per-user usage records, and referral
codes. The order total check and the (user_id, discount_code) unique
constraint are created here.

Revision ID: 001
Revises:
Create Date: 2026-10-16 09:00:00.000000
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

user_role = postgresql.ENUM('customer', 'vendor', 'admin', name='user_role', create_type=False)
order_status = postgresql.ENUM(
    'confirmed', 'processing', 'shipped', 'delivered', 'cancelled', 'returned',
    name='order_status',
    create_type=False,
)
payment_status = postgresql.ENUM(
    'pending', 'paid', 'failed', 'refunded',
    name='payment_status',
    create_type=False,
)
payment_option = postgresql.ENUM(
    'cash-on-delivery', 'online',
    name='payment_option',
    create_type=False,
)
discount_type = postgresql.ENUM('percentage', 'fixed', name='discount_type', create_type=False)
discount_target_type = postgresql.ENUM(
    'category', 'order',
    name='discount_target_type',
    create_type=False,
)

ENUM_TYPES = (
    user_role,
    order_status,
    payment_status,
    payment_option,
    discount_type,
    discount_target_type,
)


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        sa.Column(
            'updated_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
    ]


def upgrade() -> None:
    """Create the storefront tables, enum types and constraints."""
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    # Users
    op.create_table(
        'users',
        _id_column(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='customer'),
        sa.Column('reward_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('referral_code_used', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint('reward_points >= 0', name='ck_users_reward_points_non_negative'),
        comment='Storefront accounts',
    )
    op.create_index('ix_users_role', 'users', ['role'])

    # Catalog
    op.create_table(
        'categories',
        _id_column(),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('slug', sa.String(length=140), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_categories'),
        sa.UniqueConstraint('slug', name='uq_categories_slug'),
    )

    op.create_table(
        'products',
        _id_column(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            'delivery_charge',
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default='0',
        ),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.ForeignKeyConstraint(
            ['category_id'], ['categories.id'],
            name='fk_products_category_id', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['vendor_id'], ['users.id'],
            name='fk_products_vendor_id', ondelete='SET NULL',
        ),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint(
            'delivery_charge >= 0',
            name='ck_products_delivery_charge_non_negative',
        ),
        comment='Vendor products',
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_vendor_id', 'products', ['vendor_id'])

    op.create_table(
        'cart_items',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_cart_items'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_cart_items_user_id', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_cart_items_product_id', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_items_user_product'),
        sa.CheckConstraint('quantity > 0', name='ck_cart_items_quantity_positive'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    # Orders
    op.create_table(
        'orders',
        _id_column(),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', order_status, nullable=False, server_default='confirmed'),
        sa.Column('payment_status', payment_status, nullable=False, server_default='pending'),
        sa.Column(
            'payment_option',
            payment_option,
            nullable=False,
            server_default='cash-on-delivery',
        ),
        sa.Column('address_id', sa.String(length=64), nullable=True),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            'delivery_charge',
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default='0',
        ),
        sa.Column('discount_code', sa.String(length=50), nullable=True),
        sa.Column(
            'discount_amount',
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default='0',
        ),
        sa.Column('reward_points_redeemed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column(
            'reward_discount_amount',
            sa.Numeric(precision=10, scale=2),
            nullable=False,
            server_default='0',
        ),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_reference', sa.String(length=255), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('shipment_order_ref', sa.String(length=100), nullable=True),
        sa.Column('shipment_id', sa.String(length=100), nullable=True),
        sa.Column('awb_code', sa.String(length=100), nullable=True),
        sa.Column('courier_name', sa.String(length=100), nullable=True),
        sa.Column('shipping_status', sa.String(length=50), nullable=True),
        sa.Column('shipping_history', postgresql.JSONB(), nullable=True),
        sa.Column('pickup_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('delivered_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('shipping_updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('processing_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('returned_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_orders_user_id', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.UniqueConstraint('shipment_order_ref', name='uq_orders_shipment_order_ref'),
        sa.CheckConstraint(
            'ABS(total - (subtotal + delivery_charge - discount_amount '
            '- reward_discount_amount)) < 0.01',
            name='ck_orders_total_matches_breakdown',
        ),
        sa.CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint(
            'discount_amount >= 0 AND reward_discount_amount >= 0',
            name='ck_orders_deductions_non_negative',
        ),
        comment='Customer orders',
    )
    op.create_index('ix_orders_user_status', 'orders', ['user_id', 'status'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_order_items'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_order_items_order_id', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['product_id'], ['products.id'],
            name='fk_order_items_product_id', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['vendor_id'], ['users.id'],
            name='fk_order_items_vendor_id', ondelete='SET NULL',
        ),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_vendor_id', 'order_items', ['vendor_id'])

    op.create_table(
        'order_status_history',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('to_status', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=30), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_order_status_history'),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_order_status_history_order_id', ondelete='CASCADE',
        ),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    # Discounts
    op.create_table(
        'discounts',
        _id_column(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', discount_type, nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            'target_type',
            discount_target_type,
            nullable=False,
            server_default='category',
        ),
        sa.Column('category_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('vendor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_discounts'),
        sa.ForeignKeyConstraint(
            ['category_id'], ['categories.id'],
            name='fk_discounts_category_id', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['vendor_id'], ['users.id'],
            name='fk_discounts_vendor_id', ondelete='SET NULL',
        ),
        sa.CheckConstraint('discount_value > 0', name='ck_discounts_discount_value_positive'),
        sa.CheckConstraint(
            "(discount_type = 'percentage' AND discount_value <= 100) OR "
            "(discount_type = 'fixed')",
            name='ck_discounts_percentage_max_100',
        ),
        sa.CheckConstraint('end_date > start_date', name='ck_discounts_valid_date_range'),
        sa.CheckConstraint(
            "target_type = 'order' OR category_id IS NOT NULL",
            name='ck_discounts_category_required',
        ),
        comment='Discount codes',
    )
    op.create_index(
        'ix_discounts_active_window',
        'discounts',
        ['is_active', 'start_date', 'end_date'],
    )
    op.create_index(
        'uq_discounts_code_upper',
        'discounts',
        [sa.text('upper(code)')],
        unique=True,
    )

    op.create_table(
        'used_discounts',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('discount_code', sa.String(length=50), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            'used_at',
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text('CURRENT_TIMESTAMP'),
        ),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_used_discounts'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='fk_used_discounts_user_id', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['order_id'], ['orders.id'],
            name='fk_used_discounts_order_id', ondelete='SET NULL',
        ),
        sa.UniqueConstraint('user_id', 'discount_code', name='uq_used_discounts_user_code'),
    )
    op.create_index('ix_used_discounts_discount_code', 'used_discounts', ['discount_code'])

    # Referrals
    op.create_table(
        'referrals',
        _id_column(),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('reward_points', sa.Integer(), nullable=False),
        sa.Column('expiry_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_referrals'),
        sa.UniqueConstraint('code', name='uq_referrals_code'),
        sa.CheckConstraint('reward_points > 0', name='ck_referrals_reward_points_positive'),
        sa.CheckConstraint('used_count >= 0', name='ck_referrals_used_count_non_negative'),
        sa.CheckConstraint(
            'max_uses IS NULL OR max_uses > 0',
            name='ck_referrals_max_uses_positive',
        ),
        comment='Referral codes',
    )


def downgrade() -> None:
    """Drop every storefront table and enum type."""
    op.drop_table('referrals')
    op.drop_index('ix_used_discounts_discount_code', table_name='used_discounts')
    op.drop_table('used_discounts')
    op.drop_index('uq_discounts_code_upper', table_name='discounts')
    op.drop_index('ix_discounts_active_window', table_name='discounts')
    op.drop_table('discounts')
    op.drop_index('ix_order_status_history_order_id', table_name='order_status_history')
    op.drop_table('order_status_history')
    op.drop_index('ix_order_items_vendor_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_user_status', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_cart_items_user_id', table_name='cart_items')
    op.drop_table('cart_items')
    op.drop_index('ix_products_vendor_id', table_name='products')
    op.drop_index('ix_products_category_id', table_name='products')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
