"""
预订数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from datetime import datetime, timezone

from sqlalchemy import (
    DDL, Column, DateTime, Index, Integer, Numeric, String, Text, event,
)

from .base import ReservationBase


BOOKING_NO_OVERLAP_CONSTRAINT = "ex_bookings_venue_no_overlap"


class BookingModel(ReservationBase):
    """
    预订数据库模型

    同一场馆的非取消预订在 PostgreSQL 上由 GiST 排他约束保证互不重叠
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    venue_id = Column(Integer, nullable=False, index=True, comment="场馆ID")
    client_id = Column(Integer, nullable=False, index=True, comment="客户ID")
    owner_id = Column(Integer, nullable=False, comment="场馆所有者ID")

    start_at = Column(DateTime(timezone=True), nullable=False, comment="开始时间（UTC）")
    end_at = Column(DateTime(timezone=True), nullable=False, comment="结束时间（UTC）")

    price = Column(Numeric(precision=15, scale=2), nullable=False, comment="价格")

    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="预订状态: pending/confirmed/cancelled/completed"
    )
    cancel_reason = Column(Text, nullable=True, comment="取消原因")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    __table_args__ = (
        Index("ix_bookings_venue_start", "venue_id", "start_at"),
        Index("ix_bookings_client_created", "client_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<BookingModel(id={self.id}, venue_id={self.venue_id}, "
            f"start_at={self.start_at}, end_at={self.end_at}, status='{self.status}')>"
        )


# 并发下的最终裁决：[start_at, end_at) 半开区间，已取消的预订不参与
event.listen(
    BookingModel.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    BookingModel.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {BOOKING_NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (venue_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')"
    ).execute_if(dialect="postgresql"),
)
