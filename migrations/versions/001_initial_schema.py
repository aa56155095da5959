"""initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # --- Orders ---
    op.create_table('orders',
        sa.Column('id', sa.Integer(), sa.Identity(), primary_key=True),
        sa.Column('order_number', sa.String(), nullable=False),
        sa.Column('customer_name', sa.String(), nullable=False),
        sa.Column('customer_email', sa.String(), nullable=False),
        sa.Column('customer_phone', sa.String(), nullable=True),
        sa.Column('order_type', sa.String(), server_default='file', nullable=False),
        # Legacy singular fields are kept in step with the arrays
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_urls', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('original_file_name', sa.String(), nullable=True),
        sa.Column('original_file_names', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('file_type', sa.String(), nullable=True),
        sa.Column('printing_options', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('delivery_option', postgresql.JSONB(), nullable=True),
        sa.Column('amount_paise', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), server_default='INR', nullable=False),
        sa.Column('gateway_order_id', sa.String(), nullable=True),
        sa.Column('gateway_payment_id', sa.String(), nullable=True),
        sa.Column('payment_status', sa.String(), server_default='pending', nullable=False),
        sa.Column('order_status', sa.String(), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('order_number'),
        sa.UniqueConstraint('gateway_order_id'),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed')",
            name='ck_orders_payment_status'
        ),
        sa.CheckConstraint(
            "order_status IN ('pending', 'processing', 'printing', 'dispatched', 'delivered', 'cancelled')",
            name='ck_orders_order_status'
        ),
        sa.CheckConstraint("order_type IN ('file', 'template')", name='ck_orders_order_type'),
    )
    op.create_index('ix_orders_payment_status_created_at', 'orders', ['payment_status', 'created_at'])

    # --- Print Jobs ---
    op.create_table('print_jobs',
        sa.Column('id', sa.Integer(), sa.Identity(), primary_key=True),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(), nullable=False),
        sa.Column('customer_name', sa.String(), nullable=True),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('file_urls', postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('file_name', sa.String(), server_default='document.pdf', nullable=False),
        sa.Column('file_type', sa.String(), server_default='application/pdf', nullable=False),
        sa.Column('printing_options', postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('priority', sa.String(), server_default='normal', nullable=False),
        sa.Column('estimated_duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), server_default='pending', nullable=False),
        sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('max_retries', sa.Integer(), server_default='3', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        # Insert-if-absent key: one print job per order
        sa.UniqueConstraint('order_id', name='uq_print_jobs_order_id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
    )

    # --- Gateway webhook ledger ---
    op.create_table('gateway_events',
        sa.Column('event_id', sa.String(), primary_key=True),
        sa.Column('event_type', sa.String(), nullable=True),
        sa.Column('status', sa.String(), server_default='received', nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )


def downgrade():
    op.drop_table('gateway_events')
    op.drop_table('print_jobs')
    op.drop_index('ix_orders_payment_status_created_at', table_name='orders')
    op.drop_table('orders')
