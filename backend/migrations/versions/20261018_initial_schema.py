"""Initial schema: quotes, orders, invoices, proofs, bookings, payments, calendar

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. users, session_tokens (identity records + hashed bearer tokens)
2. services, tier_packages (catalog references; tier revision quotas)
3. quotes, guest_quote_tokens
4. orders, invoices, invoice_sequences
5. proof_versions
6. bookings, booking_day_capacity
7. payments
8. calendar_settings, blackout_dates, settings
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _now():
    return sa.text('(CURRENT_TIMESTAMP)')


def upgrade():
    # ==========================================================================
    # 1. IDENTITY
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_role_active', 'users', ['role', 'is_active'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user', 'session_tokens', ['user_id'], unique=False)

    # ==========================================================================
    # 2. CATALOG
    # ==========================================================================
    op.create_table('services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
        sqlite_autoincrement=True
    )

    op.create_table('tier_packages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('revision_limit', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.CheckConstraint('revision_limit IS NULL OR revision_limit >= 0', name='ck_tier_revision_limit'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 3. QUOTES
    # ==========================================================================
    op.create_table('quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('service_id', sa.Integer(), nullable=False),
        sa.Column('tier_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('estimate_subtotal_cents', sa.Integer(), nullable=True),
        sa.Column('final_subtotal_cents', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('guest_name', sa.String(length=255), nullable=True),
        sa.Column('guest_email', sa.String(length=255), nullable=True),
        sa.Column('guest_phone', sa.String(length=64), nullable=True),
        sa.Column('guest_company_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.CheckConstraint(
            '(customer_id IS NOT NULL AND guest_email IS NULL) OR '
            '(customer_id IS NULL AND guest_email IS NOT NULL)',
            name='ck_quotes_single_requester'),
        sa.CheckConstraint('final_subtotal_cents IS NULL OR final_subtotal_cents > 0', name='ck_quotes_final_positive'),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.ForeignKeyConstraint(['tier_id'], ['tier_packages.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_quotes_customer_status', 'quotes', ['customer_id', 'status'], unique=False)

    op.create_table('guest_quote_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_guest_quote_tokens_quote_id', 'guest_quote_tokens', ['quote_id'], unique=False)

    # ==========================================================================
    # 4. ORDERS & INVOICES
    # ==========================================================================
    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('tier_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('total_subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('deposit_pct', sa.Integer(), nullable=False),
        sa.Column('deposit_amount_cents', sa.Integer(), nullable=False),
        sa.Column('revision_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assigned_staff_id', sa.Integer(), nullable=True),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('revision_count >= 0', name='ck_orders_revision_count'),
        sa.CheckConstraint('total_amount_cents = total_subtotal_cents + tax_amount_cents', name='ck_orders_total'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['tier_id'], ['tier_packages.id'], ),
        sa.ForeignKeyConstraint(['assigned_staff_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quote_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_customer_status', 'orders', ['customer_id', 'status'], unique=False)
    op.create_index('ix_orders_assigned_staff', 'orders', ['assigned_staff_id'], unique=False)

    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('amount_due_cents', sa.Integer(), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
        sa.UniqueConstraint('invoice_number'),
        sqlite_autoincrement=True
    )

    op.create_table('invoice_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 5. PROOFS
    # ==========================================================================
    op.create_table('proof_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('customer_comment', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_staff_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('version_number >= 1', name='ck_proof_versions_number'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['created_by_staff_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'version_number', name='uq_proof_versions_order_version'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_proof_versions_order_id', 'proof_versions', ['order_id'], unique=False)

    # ==========================================================================
    # 6. BOOKINGS
    # ==========================================================================
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('is_emergency', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('urgent_fee_pct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint(
            '(is_emergency AND urgent_fee_pct > 0) OR (NOT is_emergency AND urgent_fee_pct = 0)',
            name='ck_bookings_urgent_fee'),
        sa.CheckConstraint('end_at > start_at', name='ck_bookings_range'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bookings_quote_status', 'bookings', ['quote_id', 'status'], unique=False)
    op.create_index('ix_bookings_start_status', 'bookings', ['start_at', 'status'], unique=False)
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'], unique=False)

    op.create_table('booking_day_capacity',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('booked_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('emergency_booked_count', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('booked_count >= 0', name='ck_capacity_booked'),
        sa.CheckConstraint('emergency_booked_count >= 0', name='ck_capacity_emergency'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('day'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 7. PAYMENTS
    # ==========================================================================
    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('transaction_ref', sa.String(length=255), nullable=True),
        sa.Column('recorded_by_admin_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount_cents > 0', name='ck_payments_amount_positive'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['recorded_by_admin_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_order_status', 'payments', ['order_id', 'status'], unique=False)

    # ==========================================================================
    # 8. CALENDAR & SETTINGS
    # ==========================================================================
    op.create_table('calendar_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('working_days', sa.JSON(), nullable=False),
        sa.Column('start_hour', sa.Integer(), nullable=False, server_default='9'),
        sa.Column('end_hour', sa.Integer(), nullable=False, server_default='18'),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False, server_default='120'),
        sa.Column('slots_per_day', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('emergency_slots_per_day', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.CheckConstraint('start_hour >= 0 AND start_hour < end_hour AND end_hour <= 24', name='ck_calendar_hours'),
        sa.CheckConstraint('slot_duration_minutes > 0', name='ck_calendar_slot_duration'),
        sa.CheckConstraint('slots_per_day >= 0', name='ck_calendar_slots'),
        sa.CheckConstraint('emergency_slots_per_day >= 0', name='ck_calendar_emergency_slots'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('blackout_dates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('day'),
        sqlite_autoincrement=True
    )

    op.create_table('settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.String(length=255), nullable=False),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('settings')
    op.drop_table('blackout_dates')
    op.drop_table('calendar_settings')
    op.drop_index('ix_payments_order_status', table_name='payments')
    op.drop_table('payments')
    op.drop_table('booking_day_capacity')
    op.drop_index('ix_bookings_customer_id', table_name='bookings')
    op.drop_index('ix_bookings_start_status', table_name='bookings')
    op.drop_index('ix_bookings_quote_status', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_proof_versions_order_id', table_name='proof_versions')
    op.drop_table('proof_versions')
    op.drop_table('invoice_sequences')
    op.drop_table('invoices')
    op.drop_index('ix_orders_assigned_staff', table_name='orders')
    op.drop_index('ix_orders_customer_status', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_guest_quote_tokens_quote_id', table_name='guest_quote_tokens')
    op.drop_table('guest_quote_tokens')
    op.drop_index('ix_quotes_customer_status', table_name='quotes')
    op.drop_table('quotes')
    op.drop_table('tier_packages')
    op.drop_table('services')
    op.drop_index('ix_session_tokens_user', table_name='session_tokens')
    op.drop_table('session_tokens')
    op.drop_index('ix_users_role_active', table_name='users')
    op.drop_table('users')
