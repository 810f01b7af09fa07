"""Create loyalty profile, ledger, cashback accrual and tier change tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the loyalty tables."""
    op.create_table(
        'loyalty_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.String(64), nullable=False),
        sa.Column('current_tier', sa.String(20), nullable=False),
        sa.Column('points_total', sa.Integer(), nullable=False),
        sa.Column('points_available', sa.Integer(), nullable=False),
        sa.Column('points_pending', sa.Integer(), nullable=False),
        sa.Column('points_expired', sa.Integer(), nullable=False),
        sa.Column('points_lifetime', sa.Integer(), nullable=False),
        sa.Column('total_lifetime_spending', sa.Numeric(12, 2), nullable=False),
        sa.Column('current_period_spending', sa.Numeric(12, 2), nullable=False),
        sa.Column('average_order_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('last_purchase_date', sa.DateTime(), nullable=True),
        sa.Column('transaction_count', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('next_tier', sa.String(20), nullable=True),
        sa.Column('spending_needed', sa.Numeric(12, 2), nullable=True),
        sa.Column('transactions_needed', sa.Integer(), nullable=True),
        sa.Column('progress_percentage', sa.Float(), nullable=True),
        sa.Column('tier_expiry', sa.DateTime(), nullable=True),
        sa.Column('last_activity', sa.DateTime(), nullable=True),
        sa.Column('achievements', sa.JSON(), nullable=True),
        sa.Column('total_referred', sa.Integer(), nullable=False),
        sa.Column('successful_referrals', sa.Integer(), nullable=False),
        sa.Column('referral_bonus', sa.Integer(), nullable=False),
        sa.Column('communication_method', sa.String(20), nullable=True),
        sa.Column('language', sa.String(5), nullable=True),
        sa.Column('marketing_consent', sa.Boolean(), nullable=True),
        sa.Column('preferred_categories', sa.JSON(), nullable=True),
        sa.Column('engagement_score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_loyalty_profiles_customer_id', 'loyalty_profiles', ['customer_id'], unique=True)

    op.create_table(
        'loyalty_transactions',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('customer_id', sa.String(64), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('description_arabic', sa.String(500), nullable=True),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['loyalty_profiles.customer_id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_loyalty_transactions_customer_id', 'loyalty_transactions', ['customer_id'])
    op.create_index('ix_loyalty_transactions_created_at', 'loyalty_transactions', ['created_at'])

    op.create_table(
        'loyalty_cashback_accruals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.String(64), nullable=False),
        sa.Column('period', sa.String(7), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['loyalty_profiles.customer_id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', 'period', name='uq_cashback_customer_period')
    )

    op.create_table(
        'loyalty_tier_changes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.String(64), nullable=False),
        sa.Column('previous_tier', sa.String(20), nullable=True),
        sa.Column('new_tier', sa.String(20), nullable=False),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('reason', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['loyalty_profiles.customer_id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_loyalty_tier_changes_customer_id', 'loyalty_tier_changes', ['customer_id'])


def downgrade():
    """Drop the loyalty tables."""
    op.drop_index('ix_loyalty_tier_changes_customer_id', table_name='loyalty_tier_changes')
    op.drop_table('loyalty_tier_changes')
    op.drop_table('loyalty_cashback_accruals')
    op.drop_index('ix_loyalty_transactions_created_at', table_name='loyalty_transactions')
    op.drop_index('ix_loyalty_transactions_customer_id', table_name='loyalty_transactions')
    op.drop_table('loyalty_transactions')
    op.drop_index('ix_loyalty_profiles_customer_id', table_name='loyalty_profiles')
    op.drop_table('loyalty_profiles')
