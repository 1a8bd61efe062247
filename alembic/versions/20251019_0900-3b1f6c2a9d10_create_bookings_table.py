"""create_bookings_table

Revision ID: 3b1f6c2a9d10
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f6c2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ('reservation',)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('venue_id', sa.Integer(), nullable=False, comment='场馆ID'),
        sa.Column('client_id', sa.Integer(), nullable=False, comment='客户ID'),
        sa.Column('owner_id', sa.Integer(), nullable=False, comment='场馆所有者ID'),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False, comment='开始时间（UTC）'),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False, comment='结束时间（UTC）'),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False, comment='价格'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='预订状态: pending/confirmed/cancelled/completed'),
        sa.Column('cancel_reason', sa.Text(), nullable=True, comment='取消原因'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('end_at > start_at', name='ck_bookings_interval'),
        sa.CheckConstraint('price > 0', name='ck_bookings_price_positive'),
        comment='场馆预订表'
    )

    op.create_index('ix_bookings_id', 'bookings', ['id'], unique=False)
    op.create_index('ix_bookings_venue_id', 'bookings', ['venue_id'], unique=False)
    op.create_index('ix_bookings_client_id', 'bookings', ['client_id'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_bookings_venue_start', 'bookings', ['venue_id', 'start_at'], unique=False)
    op.create_index('ix_bookings_client_created', 'bookings', ['client_id', 'created_at'], unique=False)

    # 同一场馆的非取消预订不得重叠（半开区间）
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_venue_no_overlap "
        "EXCLUDE USING gist (venue_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    )


def downgrade() -> None:
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_venue_no_overlap")
    op.drop_index('ix_bookings_client_created', table_name='bookings')
    op.drop_index('ix_bookings_venue_start', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_client_id', table_name='bookings')
    op.drop_index('ix_bookings_venue_id', table_name='bookings')
    op.drop_index('ix_bookings_id', table_name='bookings')
    op.drop_table('bookings')
