"""Create stock, sales, backorder and document numbering tables

Revision ID: 20261019_tradedesk_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261019_tradedesk_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Stores, customers, products
    op.create_table(
        'stores',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('location', sa.String(255)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'customers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(30)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_customers_name', 'customers', ['name'])

    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_code', sa.String(50), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('cost_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('selling_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('alert_quantity', sa.Integer, server_default='1'),
        sa.Column('max_alert_quantity', sa.Integer, server_default='5'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_products_product_code', 'products', ['product_code'])
    op.create_index('ix_products_name', 'products', ['name'])

    # Inventory lots and the transaction log
    op.create_table(
        'inventory_lots',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('lot_number', sa.String(100), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('selling_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('manufacture_date', sa.Date),
        sa.Column('expiry_date', sa.Date),
        sa.Column('received_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 0', name='chk_inventory_lot_quantity_non_negative'),
    )
    op.create_index('ix_inventory_lots_product_id', 'inventory_lots', ['product_id'])
    op.create_index('ix_inventory_lots_store_id', 'inventory_lots', ['store_id'])
    op.create_index('ix_inventory_lots_lot_number', 'inventory_lots', ['lot_number'])
    op.create_index('ix_inventory_lot_product_store', 'inventory_lots', ['product_id', 'store_id', 'is_active'])

    op.create_table(
        'inventory_transactions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('inventory_lot_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('inventory_lots.id')),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True)),
        sa.Column('transaction_type', sa.String(40), nullable=False),
        sa.Column('quantity_before', sa.Integer, nullable=False),
        sa.Column('quantity_after', sa.Integer, nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('reference_id', postgresql.UUID(as_uuid=True)),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_inventory_transactions_inventory_lot_id', 'inventory_transactions', ['inventory_lot_id'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_transaction_date', 'inventory_transactions', ['transaction_date'])
    op.create_index('ix_inventory_txn_product_store', 'inventory_transactions', ['product_id', 'store_id'])
    op.create_index('ix_inventory_txn_reference', 'inventory_transactions', ['reference_id'])

    # Sales
    op.create_table(
        'sales',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('invoice_number', sa.String(50), nullable=False, unique=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id', ondelete='SET NULL')),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_sales_invoice_number', 'sales', ['invoice_number'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])

    op.create_table(
        'sale_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('total_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('fulfilled_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('backorder_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('has_backorder', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('product_name', sa.String(255)),
        sa.Column('product_code', sa.String(50)),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('backorder_quantity >= 0', name='chk_sale_item_backorder_non_negative'),
    )
    op.create_index('ix_sale_item_sale', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    op.create_table(
        'sale_item_inventory',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('sale_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sale_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('inventory_lot_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('inventory_lots.id'), nullable=False),
        sa.Column('lot_number', sa.String(100), nullable=False),
        sa.Column('quantity_to_take', sa.Integer, nullable=False),
        sa.Column('quantity_delivered', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_sale_item_inventory_sale_item_id', 'sale_item_inventory', ['sale_item_id'])
    op.create_index('ix_sale_item_inventory_inventory_lot_id', 'sale_item_inventory', ['inventory_lot_id'])

    # Backorders
    op.create_table(
        'backorders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('sale_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sale_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pending_quantity', sa.Integer, nullable=False),
        sa.Column('original_pending_quantity', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('product_id', 'store_id', 'sale_item_id', name='uq_backorder_product_store_sale_item'),
        sa.CheckConstraint('pending_quantity >= 0', name='chk_backorder_pending_non_negative'),
    )
    op.create_index('ix_backorders_product_id', 'backorders', ['product_id'])
    op.create_index('ix_backorders_store_id', 'backorders', ['store_id'])
    op.create_index('ix_backorders_sale_item_id', 'backorders', ['sale_item_id'])
    op.create_index('ix_backorder_active_created', 'backorders', ['is_active', 'created_at'])

    # Document numbering
    op.create_table(
        'document_sequences',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('document_type', sa.String(30), nullable=False),
        sa.Column('prefix', sa.String(20), nullable=False),
        sa.Column('period', sa.String(7), nullable=False),
        sa.Column('current_number', sa.Integer, nullable=False, server_default='0'),
        sa.Column('padding_length', sa.Integer, server_default='4'),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('document_type', 'period', name='uq_document_type_period'),
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    op.create_table(
        'document_sequence_audit',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('document_type', sa.String(30), nullable=False),
        sa.Column('period', sa.String(7), nullable=False),
        sa.Column('operation', sa.String(20), nullable=False),
        sa.Column('old_number', sa.Integer),
        sa.Column('new_number', sa.Integer),
        sa.Column('document_number', sa.String(50)),
        sa.Column('user_id', postgresql.UUID(as_uuid=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_document_sequence_audit_document_type', 'document_sequence_audit', ['document_type'])

    # Purchasing
    op.create_table(
        'purchases',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('purchase_number', sa.String(50), nullable=False, unique=True),
        sa.Column('vendor_name', sa.String(200), nullable=False),
        sa.Column('vendor_invoice_number', sa.String(100)),
        sa.Column('purchase_date', sa.Date, nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('is_received', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_purchases_purchase_number', 'purchases', ['purchase_number'])

    op.create_table(
        'purchase_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('purchase_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('purchases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 2), server_default='0'),
        sa.Column('total_cost', sa.Numeric(14, 2), server_default='0'),
        sa.Column('lot_number', sa.String(100), nullable=False),
        sa.Column('expiry_date', sa.Date),
    )

    op.create_table(
        'purchase_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('purchase_order_number', sa.String(50), nullable=False, unique=True),
        sa.Column('vendor_name', sa.String(200), nullable=False),
        sa.Column('order_date', sa.Date, nullable=False),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id')),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_purchase_orders_purchase_order_number', 'purchase_orders', ['purchase_order_number'])

    # Waybills
    op.create_table(
        'waybills',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('waybill_number', sa.String(50), nullable=False, unique=True),
        sa.Column('waybill_type', sa.String(10), nullable=False, server_default='sale'),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sales.id')),
        sa.Column('original_loan_waybill_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('waybills.id')),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('store_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('stores.id'), nullable=False),
        sa.Column('waybill_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('status', sa.String(20), nullable=False, server_default='dispatched'),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_waybills_waybill_number', 'waybills', ['waybill_number'])
    op.create_index('ix_waybills_sale_id', 'waybills', ['sale_id'])

    op.create_table(
        'waybill_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('waybill_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('waybills.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sale_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sale_items.id')),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity_requested', sa.Integer, nullable=False),
        sa.Column('quantity_supplied', sa.Integer, nullable=False),
        sa.Column('quantity_converted', sa.Integer, nullable=False, server_default='0'),
    )
    op.create_index('ix_waybill_items_waybill_id', 'waybill_items', ['waybill_id'])

    op.create_table(
        'waybill_item_inventory',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('waybill_item_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('waybill_items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('inventory_lot_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('inventory_lots.id'), nullable=False),
        sa.Column('lot_number', sa.String(100), nullable=False),
        sa.Column('quantity_taken', sa.Integer, nullable=False),
    )
    op.create_index('ix_waybill_item_inventory_waybill_item_id', 'waybill_item_inventory', ['waybill_item_id'])

    # Shipments
    op.create_table(
        'shipments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('shipment_number', sa.String(50), nullable=False, unique=True),
        sa.Column('shipping_mode', sa.String(20), nullable=False),
        sa.Column('carrier_name', sa.String(200)),
        sa.Column('tracking_number', sa.String(100)),
        sa.Column('shipping_date', sa.Date),
        sa.Column('origin', sa.String(200)),
        sa.Column('destination', sa.String(200)),
        sa.Column('total_packages', sa.Integer, server_default='0'),
        sa.Column('total_items', sa.Integer, server_default='0'),
        sa.Column('total_gross_weight', sa.Numeric(12, 3), server_default='0'),
        sa.Column('total_volumetric_weight', sa.Numeric(12, 3), server_default='0'),
        sa.Column('total_chargeable_weight', sa.Numeric(12, 3), server_default='0'),
        sa.Column('total_amount', sa.Numeric(14, 2), server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_shipments_shipment_number', 'shipments', ['shipment_number'])

    op.create_table(
        'parcels',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('shipment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parcel_number', sa.String(50), nullable=False),
        sa.Column('package_type', sa.String(20), server_default='Box'),
        sa.Column('length', sa.Numeric(10, 2), nullable=False),
        sa.Column('width', sa.Numeric(10, 2), nullable=False),
        sa.Column('height', sa.Numeric(10, 2), nullable=False),
        sa.Column('net_weight', sa.Numeric(12, 3), server_default='0'),
        sa.Column('gross_weight', sa.Numeric(12, 3), nullable=False),
        sa.Column('volumetric_weight', sa.Numeric(12, 3), nullable=False),
        sa.Column('chargeable_weight', sa.Numeric(12, 3), nullable=False),
        sa.Column('volumetric_divisor', sa.Integer, nullable=False),
        sa.Column('unit_price_per_kg', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_items', sa.Integer, server_default='0'),
    )
    op.create_index('ix_parcels_shipment_id', 'parcels', ['shipment_id'])

    op.create_table(
        'parcel_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('parcel_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('parcels.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id')),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer, server_default='1'),
        sa.Column('net_weight', sa.Numeric(12, 3), server_default='0'),
    )
    op.create_index('ix_parcel_items_parcel_id', 'parcel_items', ['parcel_id'])

    # Finance
    op.create_table(
        'receipts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('receipt_number', sa.String(50), nullable=False, unique=True),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sales.id')),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('receipt_date', sa.Date, nullable=False),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_receipts_receipt_number', 'receipts', ['receipt_number'])

    op.create_table(
        'payments_received',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('payment_ref_number', sa.String(50), nullable=False, unique=True),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('sales.id')),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('customers.id')),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_date', sa.Date, nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=False, server_default='cash'),
        sa.Column('notes', sa.Text),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_payments_received_payment_ref_number', 'payments_received', ['payment_ref_number'])


def downgrade() -> None:
    for table in (
        'payments_received',
        'receipts',
        'parcel_items',
        'parcels',
        'shipments',
        'waybill_item_inventory',
        'waybill_items',
        'waybills',
        'purchase_orders',
        'purchase_items',
        'purchases',
        'document_sequence_audit',
        'document_sequences',
        'backorders',
        'sale_item_inventory',
        'sale_items',
        'sales',
        'inventory_transactions',
        'inventory_lots',
        'products',
        'customers',
        'stores',
    ):
        op.drop_table(table)
