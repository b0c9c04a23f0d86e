"""Initial schema - units, price rules, reservations

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

This migration adds:
- units: rentable listings with base price and turnover window
- price_rules: sparse per-date overrides, one per (unit, date)
- reservations: stays with frozen totals and optional idempotency key
- On PostgreSQL, an exclusion constraint so two active reservations of the
  same unit can never overlap, even if two requests race past the check
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Check if we're on PostgreSQL or SQLite
    bind = op.get_bind()
    is_postgres = bind.dialect.name == 'postgresql'

    # ==================
    # units table
    # ==================
    op.create_table(
        'units',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_id', sa.String(36), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False, server_default=''),
        sa.Column('base_price', sa.Integer, nullable=False),
        sa.Column('check_in_time', sa.String(5), nullable=False, server_default='15:00'),
        sa.Column('check_out_time', sa.String(5), nullable=False, server_default='11:00'),
        sa.Column('cleaning_buffer_hours', sa.Integer, nullable=False, server_default='4'),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('min_stay_nights', sa.Integer, nullable=False, server_default='1'),
        sa.Column('max_stay_nights', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('base_price >= 1', name='ck_units_base_price_positive'),
        sa.CheckConstraint('cleaning_buffer_hours >= 1', name='ck_units_buffer_positive'),
        sa.CheckConstraint('min_stay_nights >= 1', name='ck_units_min_stay_positive'),
        sa.CheckConstraint(
            'max_stay_nights IS NULL OR max_stay_nights >= min_stay_nights',
            name='ck_units_max_stay_range'
        ),
    )

    # ==================
    # price_rules table
    # ==================
    op.create_table(
        'price_rules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('unit_id', sa.String(36), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('price', sa.Integer, nullable=False),
        sa.Column('kind', sa.String(10), nullable=False, server_default='SPECIAL'),
        sa.Column('created_by_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('unit_id', 'date', name='uq_price_rules_unit_date'),
        sa.CheckConstraint('price >= 1', name='ck_price_rules_price_positive'),
    )

    # ==================
    # reservations table
    # ==================
    op.create_table(
        'reservations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('unit_id', sa.String(36), sa.ForeignKey('units.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guest_id', sa.String(36), nullable=False),
        sa.Column('start_date', sa.Date, nullable=False),
        sa.Column('end_date', sa.Date, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('total_price', sa.Integer, nullable=False),
        sa.Column('idempotency_key', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('end_date > start_date', name='ck_reservations_range'),
        sa.UniqueConstraint('unit_id', 'guest_id', 'idempotency_key', name='uq_reservations_idempotency'),
    )
    op.create_index('ix_reservations_unit_dates', 'reservations', ['unit_id', 'start_date', 'end_date'])
    op.create_index('ix_reservations_status', 'reservations', ['status'])

    if is_postgres:
        # Half-open daterange matches the overlap rule: back-to-back stays are allowed
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute("""
            ALTER TABLE reservations
            ADD CONSTRAINT ex_reservations_no_overlap
            EXCLUDE USING gist (
                unit_id WITH =,
                daterange(start_date, end_date, '[)') WITH &&
            )
            WHERE (status IN ('PENDING', 'CONFIRMED'))
        """)


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute("ALTER TABLE reservations DROP CONSTRAINT IF EXISTS ex_reservations_no_overlap")

    op.drop_index('ix_reservations_status', table_name='reservations')
    op.drop_index('ix_reservations_unit_dates', table_name='reservations')
    op.drop_table('reservations')
    op.drop_table('price_rules')
    op.drop_table('units')
