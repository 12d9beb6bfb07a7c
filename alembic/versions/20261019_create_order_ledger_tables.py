"""Create order ledger tables

Revision ID: 20261019_order_ledger
Revises:
Create Date: 2026-10-19

Tables created:
- businesses, subscriptions: tenants and their billing gate
- counterparties, products: catalog
- orders, order_items, order_status_history, manufacturing_stages: order lifecycle
- inventory_lots, inventory_usages: FIFO stock
- ledger_entries: append-only financial record
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261019_order_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # BUSINESSES / SUBSCRIPTIONS - Tenants
    # =========================================================================
    op.create_table(
        'businesses',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='created'),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
    )

    # =========================================================================
    # COUNTERPARTIES / PRODUCTS - Catalog
    # =========================================================================
    op.create_table(
        'counterparties',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False, server_default='CUSTOMER'),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_counterparty_business_name', 'counterparties', ['business_id', 'name'])

    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('counterparty_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('counterparties.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('unit', sa.String(20), nullable=False, server_default='pcs'),
        sa.Column('price', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('reorder_level', sa.Integer, nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('business_id', 'sku', name='uq_product_business_sku'),
    )

    # =========================================================================
    # ORDERS - Lifecycle
    # =========================================================================
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_number', sa.String(30), nullable=False, index=True),
        sa.Column('counterparty_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('counterparties.id', ondelete='RESTRICT'), nullable=False, index=True),

        # Status
        sa.Column('status', sa.String(50), nullable=False, server_default='PLACED',
                  comment='PLACED, ACCEPTED, IN_MANUFACTURING, DISPATCHED, DELIVERED, CANCELLED'),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('expected_delivery', sa.DateTime(timezone=True), nullable=True),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),

        sa.UniqueConstraint('business_id', 'order_number', name='uq_order_business_number'),
    )
    op.create_index('ix_order_business_status', 'orders', ['business_id', 'status'])
    op.create_index('ix_order_business_created', 'orders', ['business_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'order_status_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'manufacturing_stages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('stage', sa.String(50), nullable=False),
        sa.Column('sequence', sa.Integer, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING',
                  comment='PENDING, IN_PROGRESS, COMPLETED'),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('order_id', 'stage', name='uq_manufacturing_stage_order_stage'),
    )

    # =========================================================================
    # INVENTORY - FIFO lots and usage
    # =========================================================================
    op.create_table(
        'inventory_lots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('lot_number', sa.String(40), nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('remaining_qty', sa.Integer, nullable=False),
        sa.Column('cost_per_unit', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('note', sa.Text, nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_lot_quantity_positive'),
        sa.CheckConstraint('remaining_qty >= 0 AND remaining_qty <= quantity', name='ck_lot_remaining_bounds'),
    )
    op.create_index('ix_lot_fifo', 'inventory_lots', ['business_id', 'product_id', 'received_at'])

    op.create_table(
        'inventory_usages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('reason', sa.String(255), nullable=False, server_default='Manual usage'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_usage_quantity_positive'),
    )
    op.create_index('ix_usage_product_created', 'inventory_usages', ['business_id', 'product_id', 'created_at'])

    # =========================================================================
    # LEDGER_ENTRIES - Append-only
    # =========================================================================
    op.create_table(
        'ledger_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('business_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('entry_type', sa.String(20), nullable=False, comment='PURCHASE, SALE, STOCK_IN'),

        # Signed: reversals carry negative quantity and amount
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('description', sa.Text, nullable=True),

        sa.Column('product_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('counterparty_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('counterparties.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('reverses_entry_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('ledger_entries.id', ondelete='RESTRICT'), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ledger_business_type_created', 'ledger_entries',
                    ['business_id', 'entry_type', 'created_at'])
    op.create_index('ix_ledger_product', 'ledger_entries', ['business_id', 'product_id'])


def downgrade() -> None:
    op.drop_table('ledger_entries')
    op.drop_table('inventory_usages')
    op.drop_table('inventory_lots')
    op.drop_table('manufacturing_stages')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_index('ix_counterparty_business_name', table_name='counterparties')
    op.drop_table('counterparties')
    op.drop_table('subscriptions')
    op.drop_table('businesses')
