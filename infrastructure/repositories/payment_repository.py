"""
支付/退款仓储实现 - 使用SQLAlchemy实现数据访问
"""
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.payment.entity import Payment, PaymentMethod, PaymentStatus, Refund, RefundStatus
from domain.payment.repository import PaymentRepository, RefundRepository
from domain.payment.service import PaymentAlreadyExistsException
from infrastructure.models.payment import PaymentModel, RefundModel


logger = get_logger(__name__)


def _payment_entity(model: PaymentModel) -> Payment:
    return Payment(
        id=model.id,
        booking_id=model.booking_id,
        user_id=model.user_id,
        amount=Decimal(str(model.amount)),
        currency=model.currency,
        method=PaymentMethod(model.method),
        status=PaymentStatus(model.status),
        refunded_amount=Decimal(str(model.refunded_amount)),
        transaction_id=model.transaction_id,
        paid_at=model.paid_at,
        refunded_at=model.refunded_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _refund_entity(model: RefundModel) -> Refund:
    return Refund(
        id=model.id,
        payment_id=model.payment_id,
        amount=Decimal(str(model.amount)),
        reason=model.reason,
        status=RefundStatus(model.status),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SQLAlchemyPaymentRepository(PaymentRepository):
    """支付仓储的SQLAlchemy实现；booking_id 唯一约束保证一笔预订至多一笔支付"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _first(self, *criteria, for_update: bool = False) -> Optional[PaymentModel]:
        query = select(PaymentModel).where(*criteria)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, payment: Payment) -> Payment:
        model = PaymentModel(
            booking_id=payment.booking_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method.value,
            status=payment.status.value,
            refunded_amount=payment.refunded_amount,
            transaction_id=payment.transaction_id,
            paid_at=payment.paid_at,
            refunded_at=payment.refunded_at,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # 插入失败后会话不可继续使用，回滚本次工作单元内的写入
            await self.session.rollback()
            if "booking_id" not in str(exc).lower():
                raise
            logger.warning("payment_create_conflict", booking_id=payment.booking_id)
            raise PaymentAlreadyExistsException(payment.booking_id) from exc

        await self.session.refresh(model)
        logger.info(
            "payment_created",
            payment_id=model.id,
            booking_id=model.booking_id,
            status=model.status,
        )
        return _payment_entity(model)

    async def get_by_id(self, payment_id: int, *, for_update: bool = False) -> Optional[Payment]:
        model = await self._first(PaymentModel.id == payment_id, for_update=for_update)
        return _payment_entity(model) if model else None

    async def get_by_booking_id(
        self, booking_id: int, *, for_update: bool = False
    ) -> Optional[Payment]:
        model = await self._first(PaymentModel.booking_id == booking_id, for_update=for_update)
        return _payment_entity(model) if model else None

    async def list_by_user(self, user_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.user_id == user_id)
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [_payment_entity(m) for m in result.scalars().all()]

    async def count_by_user(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(PaymentModel).where(PaymentModel.user_id == user_id)
        )
        return int(result.scalar_one())

    async def update(self, payment: Payment) -> Payment:
        """只回写状态相关字段；金额、预订与用户创建后不可变"""
        model = await self._first(PaymentModel.id == payment.id)
        if model is None:
            raise ValueError(f"Payment with id {payment.id} not found")

        model.status = payment.status.value
        model.refunded_amount = payment.refunded_amount
        model.paid_at = payment.paid_at
        model.refunded_at = payment.refunded_at
        model.updated_at = payment.updated_at
        await self.session.flush()
        await self.session.refresh(model)

        logger.info(
            "payment_updated",
            payment_id=model.id,
            booking_id=model.booking_id,
            status=model.status,
            refunded_amount=str(model.refunded_amount),
        )
        return _payment_entity(model)


class SQLAlchemyRefundRepository(RefundRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, refund: Refund) -> Refund:
        model = RefundModel(
            payment_id=refund.payment_id,
            amount=refund.amount,
            reason=refund.reason,
            status=refund.status.value,
            created_at=refund.created_at,
            updated_at=refund.updated_at,
        )
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)

        logger.info(
            "refund_created",
            refund_id=model.id,
            payment_id=model.payment_id,
            amount=str(model.amount),
        )
        return _refund_entity(model)

    async def list_by_payment(self, payment_id: int) -> List[Refund]:
        result = await self.session.execute(
            select(RefundModel)
            .where(RefundModel.payment_id == payment_id)
            .order_by(RefundModel.created_at, RefundModel.id)
        )
        return [_refund_entity(m) for m in result.scalars().all()]
