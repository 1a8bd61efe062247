"""Unit of Work 抽象定义

预订库与支付库由不同服务独立拥有，各自一个事务边界，不存在跨库事务。
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from domain.booking.repository import BookingRepository
from domain.payment.repository import PaymentRepository, RefundRepository


class AbstractUnitOfWork(ABC):
    """应用层事务边界控制抽象"""

    def __init__(self, *, readonly: bool = False) -> None:
        self._committed = False
        self._readonly = readonly

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.rollback()
        else:
            # 只在非只读且未显式提交时自动提交
            if not self._readonly and not self._committed:
                await self.commit()

    @abstractmethod
    async def commit(self) -> None:
        """提交事务"""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """回滚事务"""


class BookingUnitOfWork(AbstractUnitOfWork):
    """预订库事务边界"""

    booking_repository: BookingRepository


class PaymentUnitOfWork(AbstractUnitOfWork):
    """支付库事务边界：退款记录与支付已退金额必须在同一事务内写入"""

    payment_repository: PaymentRepository
    refund_repository: RefundRepository
