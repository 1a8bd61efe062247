"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.unit_of_work import BookingUnitOfWork, PaymentUnitOfWork
from infrastructure.repositories.booking_repository import SQLAlchemyBookingRepository
from infrastructure.repositories.payment_repository import (
    SQLAlchemyPaymentRepository,
    SQLAlchemyRefundRepository,
)


class _SQLAlchemySessionMixin:
    """会话生命周期：进入时开启事务，退出时提交/回滚并关闭会话"""

    _session_factory: Callable[[], AsyncSession]
    _readonly: bool
    _committed: bool
    session: Optional[AsyncSession]

    def _bind_repositories(self) -> None:
        raise NotImplementedError

    def _unbind_repositories(self) -> None:
        raise NotImplementedError

    async def __aenter__(self):
        self.session = self._session_factory()
        self._bind_repositories()
        # 仅在非只读模式下显式开启事务
        if not self._readonly:
            await self.session.begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self.session is not None:
                await self.session.close()
                self.session = None
            self._unbind_repositories()

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False


class SQLAlchemyBookingUnitOfWork(_SQLAlchemySessionMixin, BookingUnitOfWork):
    """预订库 Unit of Work"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session = None
        self.booking_repository = None

    def _bind_repositories(self) -> None:
        self.booking_repository = SQLAlchemyBookingRepository(self.session)

    def _unbind_repositories(self) -> None:
        self.booking_repository = None


class SQLAlchemyPaymentUnitOfWork(_SQLAlchemySessionMixin, PaymentUnitOfWork):
    """支付库 Unit of Work：支付行锁、退款插入与已退金额更新在同一事务"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self.session = None
        self.payment_repository = None
        self.refund_repository = None

    def _bind_repositories(self) -> None:
        self.payment_repository = SQLAlchemyPaymentRepository(self.session)
        self.refund_repository = SQLAlchemyRefundRepository(self.session)

    def _unbind_repositories(self) -> None:
        self.payment_repository = None
        self.refund_repository = None
