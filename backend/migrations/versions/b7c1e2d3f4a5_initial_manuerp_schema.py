"""initial manuerp schema

Revision ID: b7c1e2d3f4a5
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the ManufactureERP schema:
- users: accounts with role, active and verified flags
- materials: material master with a cached stock balance
- stock_ledger_entries: one row per recorded stock movement
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1e2d3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """
    Create all tables from scratch.

    materials.stock_quantity is a cache of the ledger; the CHECK constraints
    keep both the cache and every balance_after snapshot non-negative.
    """

    # ============================================================================
    # users: Authentication and attribution
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('avatar', sa.String(length=4), nullable=True),
        sa.Column('department', sa.String(length=120), nullable=True),
        sa.Column('employee_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "role IN ('admin', 'manager', 'operator', 'inventory')",
            name='ck_users_role'
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    # ============================================================================
    # materials: Material master with cached balance
    # ============================================================================
    op.create_table(
        'materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('stock_quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_materials_stock_non_negative'),
        sa.CheckConstraint('unit_cost >= 0', name='ck_materials_unit_cost_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_materials_code', 'materials', ['code'], unique=True)
    op.create_index('ix_materials_category', 'materials', ['category'])
    op.create_index('ix_materials_stock_quantity', 'materials', ['stock_quantity'])

    # ============================================================================
    # stock_ledger_entries: Recorded stock movements
    # ============================================================================
    op.create_table(
        'stock_ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('reference', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity > 0', name='ck_stock_ledger_quantity_positive'),
        sa.CheckConstraint('balance_after >= 0', name='ck_stock_ledger_balance_non_negative'),
        sa.CheckConstraint(
            "movement_type IN ('in', 'out', 'adjustment', 'transfer')",
            name='ck_stock_ledger_movement_type'
        ),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_ledger_entries_material_id', 'stock_ledger_entries', ['material_id'])
    op.create_index('ix_stock_ledger_entries_movement_type', 'stock_ledger_entries', ['movement_type'])
    op.create_index('ix_stock_ledger_entries_created_by_id', 'stock_ledger_entries', ['created_by_id'])
    op.create_index('ix_stock_ledger_entries_created_at', 'stock_ledger_entries', ['created_at'])
    op.create_index('ix_stock_ledger_material_created', 'stock_ledger_entries', ['material_id', 'created_at'])


def downgrade():
    op.drop_index('ix_stock_ledger_material_created', table_name='stock_ledger_entries')
    op.drop_index('ix_stock_ledger_entries_created_at', table_name='stock_ledger_entries')
    op.drop_index('ix_stock_ledger_entries_created_by_id', table_name='stock_ledger_entries')
    op.drop_index('ix_stock_ledger_entries_movement_type', table_name='stock_ledger_entries')
    op.drop_index('ix_stock_ledger_entries_material_id', table_name='stock_ledger_entries')
    op.drop_table('stock_ledger_entries')

    op.drop_index('ix_materials_stock_quantity', table_name='materials')
    op.drop_index('ix_materials_category', table_name='materials')
    op.drop_index('ix_materials_code', table_name='materials')
    op.drop_table('materials')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
