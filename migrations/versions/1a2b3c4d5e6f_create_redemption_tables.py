"""Create catalog, redemption ledger, feedback, reward and payment tables.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create every table the redemption core reads or writes."""
    op.create_table(
        'campaigns',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('target_responses', sa.Integer(), nullable=True, server_default=sa.text('0')),
        sa.Column('active', sa.Boolean(), nullable=True, server_default=sa.text('TRUE')),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True, server_default=sa.text('TRUE')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'product_skus',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.Column('weight', sa.String(20), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('reward_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('reward_description', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
    )

    op.create_table(
        'campaign_products',
        sa.Column('campaign_id', sa.String(36), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=False),
        sa.PrimaryKeyConstraint('campaign_id', 'product_id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'qr_codes',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('campaign_id', sa.String(36), nullable=False),
        sa.Column('sku_id', sa.String(36), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('batch_number', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.text('FALSE')),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('used_by', sa.String(20), nullable=True),
        sa.Column('location', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sku_id'], ['product_skus.id']),
        sa.UniqueConstraint('token_hash', name='uq_qr_codes_token_hash'),
    )
    op.create_index('ix_qr_codes_campaign_id', 'qr_codes', ['campaign_id'])
    op.create_index('ix_qr_codes_sku_id', 'qr_codes', ['sku_id'])
    op.create_index('ix_qr_codes_is_used', 'qr_codes', ['is_used'])
    op.create_index('ix_qr_codes_campaign_used', 'qr_codes', ['campaign_id', 'is_used'])

    op.create_table(
        'feedback',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('campaign_id', sa.String(36), nullable=False),
        sa.Column('sku_id', sa.String(36), nullable=False),
        sa.Column('qr_code_id', sa.String(36), nullable=True),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('customer_name', sa.String(100), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('sentiment', sa.String(20), nullable=False),
        sa.Column('custom_answers', sa.JSON(), nullable=True),
        sa.Column('location', sa.JSON(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=True, server_default=sa.text('FALSE')),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sku_id'], ['product_skus.id']),
        sa.ForeignKeyConstraint(['qr_code_id'], ['qr_codes.id']),
        sa.UniqueConstraint('qr_code_id', name='uq_feedback_qr_code_id'),
        sa.UniqueConstraint('campaign_id', 'customer_phone', name='uq_feedback_campaign_phone'),
    )
    op.create_index('ix_feedback_campaign_id', 'feedback', ['campaign_id'])

    op.create_table(
        'rewards',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('feedback_id', sa.String(36), nullable=False),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('reward_name', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['feedback_id'], ['feedback.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('feedback_id', name='uq_rewards_feedback_id'),
    )
    op.create_index('ix_rewards_status', 'rewards', ['status'])

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('reward_id', sa.String(36), nullable=True),
        sa.Column('phone_number', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('transaction_id', sa.String(100), nullable=True),
        sa.Column('originator_conversation_id', sa.String(100), nullable=True),
        sa.Column('result_code', sa.String(20), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['reward_id'], ['rewards.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_payment_transactions_reward_id', 'payment_transactions', ['reward_id'])
    op.create_index('ix_payment_transactions_transaction_id', 'payment_transactions', ['transaction_id'])


def downgrade():
    """Drop all tables in reverse dependency order."""
    op.drop_index('ix_payment_transactions_transaction_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_reward_id', table_name='payment_transactions')
    op.drop_table('payment_transactions')

    op.drop_index('ix_rewards_status', table_name='rewards')
    op.drop_table('rewards')

    op.drop_index('ix_feedback_campaign_id', table_name='feedback')
    op.drop_table('feedback')

    op.drop_index('ix_qr_codes_campaign_used', table_name='qr_codes')
    op.drop_index('ix_qr_codes_is_used', table_name='qr_codes')
    op.drop_index('ix_qr_codes_sku_id', table_name='qr_codes')
    op.drop_index('ix_qr_codes_campaign_id', table_name='qr_codes')
    op.drop_table('qr_codes')

    op.drop_table('campaign_products')
    op.drop_table('product_skus')
    op.drop_table('products')
    op.drop_table('campaigns')
