"""Create inventory tables

Revision ID: 3f1c2a9d8e10
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f1c2a9d8e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MOVEMENT_KIND = sa.Enum('PURCHASE', 'SALE', 'ADJUSTMENT', 'TRANSFER_IN', 'TRANSFER_OUT', name='movementkind')


def upgrade() -> None:
    """Upgrade schema."""
    # Reference data
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_name'), 'products', ['name'], unique=False)
    op.create_index(op.f('ix_products_code'), 'products', ['code'], unique=True)

    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), sa.CheckConstraint('price >= 0'), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), sa.CheckConstraint('cost_price >= 0'), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), sa.CheckConstraint('tax_rate >= 0 AND tax_rate <= 100'), nullable=False),
        sa.Column('hsn_code', sa.String(), nullable=True),
        sa.Column('min_stock_level', sa.Integer(), sa.CheckConstraint('min_stock_level >= 0'), nullable=False),
        sa.Column('reorder_quantity', sa.Integer(), sa.CheckConstraint('reorder_quantity >= 0'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_product_variants_id'), 'product_variants', ['id'], unique=False)
    op.create_index(op.f('ix_product_variants_product_id'), 'product_variants', ['product_id'], unique=False)
    op.create_index(op.f('ix_product_variants_sku'), 'product_variants', ['sku'], unique=True)

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_index(op.f('ix_warehouses_id'), 'warehouses', ['id'], unique=False)

    # Batches and per-warehouse batch stock
    op.create_table(
        'product_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('batch_number', sa.String(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('cost_price', sa.Numeric(12, 2), sa.CheckConstraint('cost_price >= 0'), nullable=False),
        sa.Column('initial_quantity', sa.Integer(), sa.CheckConstraint('initial_quantity >= 0'), nullable=False),
        sa.Column('current_quantity', sa.Integer(), sa.CheckConstraint('current_quantity >= 0'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'batch_number', name='uq_product_batches_variant_number'),
    )
    op.create_index(op.f('ix_product_batches_id'), 'product_batches', ['id'], unique=False)
    op.create_index(op.f('ix_product_batches_variant_id'), 'product_batches', ['variant_id'], unique=False)
    op.create_index(op.f('ix_product_batches_expiry_date'), 'product_batches', ['expiry_date'], unique=False)

    op.create_table(
        'warehouse_batch_stock',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), sa.CheckConstraint('quantity >= 0'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.ForeignKeyConstraint(['batch_id'], ['product_batches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('warehouse_id', 'variant_id', 'batch_id', name='uq_warehouse_batch_stock_key'),
    )
    op.create_index(op.f('ix_warehouse_batch_stock_id'), 'warehouse_batch_stock', ['id'], unique=False)
    op.create_index(op.f('ix_warehouse_batch_stock_warehouse_id'), 'warehouse_batch_stock', ['warehouse_id'], unique=False)
    op.create_index(op.f('ix_warehouse_batch_stock_variant_id'), 'warehouse_batch_stock', ['variant_id'], unique=False)
    op.create_index(op.f('ix_warehouse_batch_stock_batch_id'), 'warehouse_batch_stock', ['batch_id'], unique=False)

    # Append-only logs
    op.create_table(
        'inventory_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', MOVEMENT_KIND, nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('running_balance', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_value', sa.Numeric(14, 2), nullable=False),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.ForeignKeyConstraint(['batch_id'], ['product_batches.id']),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_inventory_ledger_id'), 'inventory_ledger', ['id'], unique=False)
    op.create_index(op.f('ix_inventory_ledger_transaction_date'), 'inventory_ledger', ['transaction_date'], unique=False)
    op.create_index(op.f('ix_inventory_ledger_warehouse_id'), 'inventory_ledger', ['warehouse_id'], unique=False)
    op.create_index(op.f('ix_inventory_ledger_variant_id'), 'inventory_ledger', ['variant_id'], unique=False)
    op.create_index(op.f('ix_inventory_ledger_batch_id'), 'inventory_ledger', ['batch_id'], unique=False)
    op.create_index(op.f('ix_inventory_ledger_transaction_type'), 'inventory_ledger', ['transaction_type'], unique=False)

    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(), nullable=False),
        sa.Column('reason', sa.String(), nullable=True),
        sa.Column('reference_id', sa.String(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_inventory_transactions_id'), 'inventory_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_inventory_transactions_variant_id'), 'inventory_transactions', ['variant_id'], unique=False)
    op.create_index(op.f('ix_inventory_transactions_warehouse_id'), 'inventory_transactions', ['warehouse_id'], unique=False)
    op.create_index(op.f('ix_inventory_transactions_transaction_type'), 'inventory_transactions', ['transaction_type'], unique=False)
    op.create_index(op.f('ix_inventory_transactions_created_at'), 'inventory_transactions', ['created_at'], unique=False)

    op.create_table(
        'accounting_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('ledger_type', sa.String(20), nullable=False),
        sa.Column('account_name', sa.String(), nullable=False),
        sa.Column('debit_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('credit_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('reference_id', sa.String(), nullable=True),
        sa.Column('reference_type', sa.String(50), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_accounting_ledger_id'), 'accounting_ledger', ['id'], unique=False)
    op.create_index(op.f('ix_accounting_ledger_transaction_date'), 'accounting_ledger', ['transaction_date'], unique=False)
    op.create_index(op.f('ix_accounting_ledger_account_name'), 'accounting_ledger', ['account_name'], unique=False)

    op.create_table(
        'operation_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(128), nullable=False),
        sa.Column('operation', sa.String(20), nullable=False),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_operation_records_id'), 'operation_records', ['id'], unique=False)
    op.create_index(op.f('ix_operation_records_key'), 'operation_records', ['key'], unique=True)

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ts', sa.DateTime(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(50), nullable=True),
        sa.Column('resource', sa.String(50), nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
        sa.Column('ip', sa.String(64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_logs_id'), 'logs', ['id'], unique=False)
    op.create_index(op.f('ix_logs_ts'), 'logs', ['ts'], unique=False)
    op.create_index(op.f('ix_logs_action'), 'logs', ['action'], unique=False)
    op.create_index(op.f('ix_logs_resource'), 'logs', ['resource'], unique=False)
    op.create_index(op.f('ix_logs_status'), 'logs', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'logs',
        'operation_records',
        'accounting_ledger',
        'inventory_transactions',
        'inventory_ledger',
        'warehouse_batch_stock',
        'product_batches',
        'warehouses',
        'product_variants',
        'products',
        'users',
    ):
        op.drop_table(table)
    MOVEMENT_KIND.drop(op.get_bind(), checkfirst=True)
