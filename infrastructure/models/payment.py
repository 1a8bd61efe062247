"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .base import PaymentBase


class PaymentModel(PaymentBase):
    """
    支付数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    # 主键
    id = Column(Integer, primary_key=True, index=True)

    # 预订信息：每个预订最多一笔支付，唯一约束是幂等创建的最终保障
    booking_id = Column(Integer, unique=True, index=True, nullable=False, comment="预订ID")
    user_id = Column(Integer, nullable=False, index=True, comment="付款用户ID")

    # 金额信息（使用 Numeric 存储精确金额）
    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="支付金额")
    currency = Column(String(3), nullable=False, default="RUB", comment="货币代码 ISO-4217")
    method = Column(String(20), nullable=False, default="card", comment="支付方式: card/cash")
    transaction_id = Column(String(64), unique=True, nullable=False, comment="交易流水号")

    # 退款信息
    refunded_amount = Column(
        Numeric(precision=15, scale=2),
        nullable=False,
        default=0,
        comment="已退款金额"
    )

    # 状态
    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="支付状态: pending/completed/refunded/failed"
    )

    # 时间戳
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
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")
    refunded_at = Column(DateTime(timezone=True), nullable=True, comment="全额退款时间")

    # 关系
    refunds = relationship("RefundModel", back_populates="payment", lazy="select")

    # 索引
    __table_args__ = (
        Index("ix_payments_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, booking_id={self.booking_id}, "
            f"amount={self.amount}, status='{self.status}')>"
        )


class RefundModel(PaymentBase):
    """
    退款数据库模型

    退款作为支付聚合的一部分，记录支付的退款明细
    """
    __tablename__ = "refunds"

    id = Column(Integer, primary_key=True, index=True)

    payment_id = Column(
        Integer,
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="关联的支付ID"
    )

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="退款金额")
    reason = Column(Text, nullable=False, comment="退款原因")
    status = Column(
        String(20),
        nullable=False,
        default="completed",
        comment="退款状态: pending/completed/failed"
    )

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

    payment = relationship("PaymentModel", back_populates="refunds")

    def __repr__(self):
        return (
            f"<RefundModel(id={self.id}, payment_id={self.payment_id}, "
            f"amount={self.amount}, status='{self.status}')>"
        )
