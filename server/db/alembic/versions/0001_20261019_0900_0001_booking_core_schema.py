"""Booking core schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Needed for the equality columns of the bookings exclusion constraint
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    # Create tenants table
    op.create_table('tenants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('timezone', sa.String(length=64), server_default='UTC', nullable=False),
        sa.Column('slot_granularity_minutes', sa.Integer(), server_default='30', nullable=False),
        sa.Column('max_advance_days', sa.Integer(), server_default='90', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('slot_granularity_minutes >= 5 AND slot_granularity_minutes <= 60', name='ck_tenant_slot_granularity_range'),
        sa.CheckConstraint('max_advance_days > 0', name='ck_tenant_max_advance_days_positive'),
        sa.PrimaryKeyConstraint('id', name='pk_tenants')
    )

    # Create resources table
    op.create_table('resources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=20), server_default='staff', nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('hourly_rate_diff', sa.Integer(), server_default='0', nullable=False),
        sa.Column('nomination_fee', sa.Integer(), server_default='0', nullable=False),
        sa.Column('lock_version', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("type IN ('staff', 'room', 'equipment', 'vehicle')", name='ck_resource_type'),
        sa.CheckConstraint('nomination_fee >= 0', name='ck_resource_nomination_fee_non_negative'),
        sa.CheckConstraint('length(name) > 0', name='ck_resource_name_not_empty'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_resources')
    )
    op.create_index(op.f('ix_resources_tenant_id'), 'resources', ['tenant_id'], unique=False)

    # Create business_hours table
    op.create_table('business_hours',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('weekday', sa.Integer(), nullable=False),
        sa.Column('opens_at', sa.Time(), nullable=True),
        sa.Column('closes_at', sa.Time(), nullable=True),
        sa.Column('is_closed', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.CheckConstraint('weekday >= 0 AND weekday <= 6', name='ck_business_hours_weekday_range'),
        sa.CheckConstraint('is_closed OR (opens_at IS NOT NULL AND closes_at IS NOT NULL AND closes_at > opens_at)', name='ck_business_hours_window'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_business_hours'),
        sa.UniqueConstraint('tenant_id', 'resource_id', 'weekday', name='uq_business_hours_tenant_resource_weekday')
    )
    op.create_index(op.f('ix_business_hours_tenant_id'), 'business_hours', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_business_hours_resource_id'), 'business_hours', ['resource_id'], unique=False)

    # Create calendar_entries table
    op.create_table('calendar_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('opens_at', sa.Time(), nullable=True),
        sa.Column('closes_at', sa.Time(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint("kind IN ('closed', 'special_hours')", name='ck_calendar_entry_kind'),
        sa.CheckConstraint("kind = 'closed' OR (opens_at IS NOT NULL AND closes_at IS NOT NULL AND closes_at > opens_at)", name='ck_calendar_entry_hours'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_calendar_entries')
    )
    op.create_index(op.f('ix_calendar_entries_tenant_id'), 'calendar_entries', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_calendar_entries_entry_date'), 'calendar_entries', ['entry_date'], unique=False)

    # Create menus table
    op.create_table('menus',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('base_duration', sa.Integer(), nullable=False),
        sa.Column('prep_duration', sa.Integer(), server_default='0', nullable=False),
        sa.Column('cleanup_duration', sa.Integer(), server_default='0', nullable=False),
        sa.Column('base_price', sa.Integer(), server_default='0', nullable=False),
        sa.Column('minimum_advance_hours', sa.Integer(), server_default='0', nullable=False),
        sa.Column('require_approval', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('allowed_resource_types', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('base_duration > 0', name='ck_menu_base_duration_positive'),
        sa.CheckConstraint('prep_duration >= 0', name='ck_menu_prep_duration_non_negative'),
        sa.CheckConstraint('cleanup_duration >= 0', name='ck_menu_cleanup_duration_non_negative'),
        sa.CheckConstraint('base_price >= 0', name='ck_menu_base_price_non_negative'),
        sa.CheckConstraint('minimum_advance_hours >= 0', name='ck_menu_minimum_advance_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_menus')
    )
    op.create_index(op.f('ix_menus_tenant_id'), 'menus', ['tenant_id'], unique=False)

    # Create menu_options table
    op.create_table('menu_options',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_type', sa.String(length=20), server_default='fixed', nullable=False),
        sa.Column('price_value', sa.Integer(), server_default='0', nullable=False),
        sa.Column('duration_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_required', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.CheckConstraint("price_type IN ('fixed', 'percentage', 'duration_based', 'free')", name='ck_menu_option_price_type'),
        sa.CheckConstraint('price_value >= 0', name='ck_menu_option_price_value_non_negative'),
        sa.CheckConstraint('duration_minutes >= 0', name='ck_menu_option_duration_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['menu_id'], ['menus.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_menu_options')
    )
    op.create_index(op.f('ix_menu_options_tenant_id'), 'menu_options', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_menu_options_menu_id'), 'menu_options', ['menu_id'], unique=False)

    # Create combo_discounts table
    op.create_table('combo_discounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('option_ids', sa.JSON(), nullable=False),
        sa.Column('min_options', sa.Integer(), server_default='0', nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_combo_discount_amount_positive'),
        sa.CheckConstraint('min_options >= 0', name='ck_combo_discount_min_options_non_negative'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['menu_id'], ['menus.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_combo_discounts')
    )
    op.create_index(op.f('ix_combo_discounts_tenant_id'), 'combo_discounts', ['tenant_id'], unique=False)

    # Create customers table
    op.create_table('customers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_customer_name_not_empty'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_customers')
    )
    op.create_index(op.f('ix_customers_tenant_id'), 'customers', ['tenant_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('booking_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('hold_token', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.String(length=1000), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='ck_booking_end_after_start'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_booking_duration_positive'),
        sa.CheckConstraint('total_price >= 0', name='ck_booking_total_price_non_negative'),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled', 'completed', 'no_show')", name='ck_booking_status'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['menu_id'], ['menus.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_bookings'),
        sa.UniqueConstraint('tenant_id', 'booking_number', name='uq_bookings_tenant_booking_number'),
        sa.UniqueConstraint('hold_token', name='uq_bookings_hold_token')
    )
    op.create_index(op.f('ix_bookings_tenant_id'), 'bookings', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_id'), 'bookings', ['customer_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_tenant_resource_date', 'bookings', ['tenant_id', 'resource_id', 'booking_date'], unique=False)

    # Two pending/confirmed bookings of one resource may never overlap
    op.execute("""
        ALTER TABLE bookings
        ADD CONSTRAINT ex_bookings_no_overlap
        EXCLUDE USING gist (
            tenant_id WITH =,
            resource_id WITH =,
            tsrange(booking_date + start_time, booking_date + end_time, '[)') WITH &&
        )
        WHERE (status IN ('pending', 'confirmed') AND deleted_at IS NULL AND resource_id IS NOT NULL)
    """)

    # Create booking_options table
    op.create_table('booking_options',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('menu_option_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Integer(), server_default='0', nullable=False),
        sa.Column('duration_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['menu_option_id'], ['menu_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_booking_options')
    )
    op.create_index(op.f('ix_booking_options_booking_id'), 'booking_options', ['booking_id'], unique=False)

    # Create hold_tokens table
    op.create_table('hold_tokens',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('menu_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('option_ids', sa.JSON(), nullable=False),
        sa.Column('hold_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('consumed_at', sa.DateTime(), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('extension_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='ck_hold_token_end_after_start'),
        sa.CheckConstraint('expires_at > issued_at', name='ck_hold_token_expiry_after_issue'),
        sa.CheckConstraint('length(token) > 0', name='ck_hold_token_token_not_empty'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['menu_id'], ['menus.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_hold_tokens'),
        sa.UniqueConstraint('token', name='uq_hold_tokens_token')
    )
    op.create_index(op.f('ix_hold_tokens_tenant_id'), 'hold_tokens', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_hold_tokens_expires_at'), 'hold_tokens', ['expires_at'], unique=False)
    op.create_index('ix_hold_tokens_tenant_resource_date', 'hold_tokens', ['tenant_id', 'resource_id', 'hold_date'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('hold_tokens')
    op.drop_table('booking_options')
    op.drop_table('bookings')
    op.drop_table('customers')
    op.drop_table('combo_discounts')
    op.drop_table('menu_options')
    op.drop_table('menus')
    op.drop_table('calendar_entries')
    op.drop_table('business_hours')
    op.drop_table('resources')
    op.drop_table('tenants')
