"""create_payments_and_refunds

Revision ID: 8e4d2b7f1c53
Revises:
Create Date: 2025-10-19 09:05:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8e4d2b7f1c53'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ('payment',)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False, comment='预订ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='付款用户ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='支付金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='RUB', comment='货币代码 ISO-4217'),
        sa.Column('method', sa.String(length=20), nullable=False, server_default='card', comment='支付方式: card/cash'),
        sa.Column('transaction_id', sa.String(length=64), nullable=False, comment='交易流水号'),
        sa.Column('refunded_amount', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0', comment='已退款金额'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='支付状态: pending/completed/refunded/failed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='支付完成时间'),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True, comment='全额退款时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_payments_transaction_id'),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
        sa.CheckConstraint(
            'refunded_amount >= 0 AND refunded_amount <= amount',
            name='ck_payments_refunded_within_amount',
        ),
        comment='支付表，每个预订最多一笔'
    )
    op.create_index('ix_payments_id', 'payments', ['id'], unique=False)
    op.create_index('ix_payments_booking_id', 'payments', ['booking_id'], unique=True)
    op.create_index('ix_payments_user_id', 'payments', ['user_id'], unique=False)
    op.create_index('ix_payments_status', 'payments', ['status'], unique=False)
    op.create_index('ix_payments_user_created', 'payments', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'refunds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=False, comment='关联的支付ID'),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False, comment='退款金额'),
        sa.Column('reason', sa.Text(), nullable=False, comment='退款原因'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed', comment='退款状态: pending/completed/failed'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_refunds_amount_positive'),
        comment='退款明细表'
    )
    op.create_index('ix_refunds_id', 'refunds', ['id'], unique=False)
    op.create_index('ix_refunds_payment_id', 'refunds', ['payment_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_refunds_payment_id', table_name='refunds')
    op.drop_index('ix_refunds_id', table_name='refunds')
    op.drop_table('refunds')
    op.drop_index('ix_payments_user_created', table_name='payments')
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_user_id', table_name='payments')
    op.drop_index('ix_payments_booking_id', table_name='payments')
    op.drop_index('ix_payments_id', table_name='payments')
    op.drop_table('payments')
