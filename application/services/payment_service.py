"""
支付应用服务（application/services）- 编排支付与退款用例

只依赖支付库的 Unit of Work；与预订库之间没有任何共享事务。
"""
from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from application.dtos.auth import Actor
from application.dtos.payments import (
    CreatePaymentDTO,
    PaymentDTO,
    RefundDTO,
    RefundRequestDTO,
    RefundResultDTO,
)
from core.logging_config import get_logger
from domain.common.exceptions import ForbiddenException
from domain.common.unit_of_work import PaymentUnitOfWork
from domain.payment.entity import Payment, PaymentMethod, PaymentStatus
from domain.payment.service import PaymentDomainService, PaymentNotFoundException


logger = get_logger(__name__)


class PaymentApplicationService:
    def __init__(
        self,
        uow_factory: Callable[..., PaymentUnitOfWork],
        default_currency: str = "RUB",
    ) -> None:
        self._uow_factory = uow_factory
        self._default_currency = default_currency

    @staticmethod
    def _ensure_visible(actor: Actor, payment: Payment) -> None:
        if not actor.is_admin and payment.user_id != actor.user_id:
            raise ForbiddenException("not allowed to access this payment")

    async def create_payment(self, actor: Actor, dto: CreatePaymentDTO) -> PaymentDTO:
        """直接创建一笔已完成的支付（每个预订最多一笔）"""
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_repository, uow.refund_repository)
            payment = await domain_service.create_payment(
                booking_id=dto.booking_id,
                user_id=actor.user_id,
                amount=dto.amount,
                currency=dto.currency or self._default_currency,
                method=PaymentMethod(dto.method),
                status=PaymentStatus.COMPLETED,
            )
        logger.info(
            "payment_created",
            payment_id=payment.id,
            booking_id=payment.booking_id,
            amount=str(payment.amount),
            currency=payment.currency,
        )
        return PaymentDTO.from_entity(payment)

    async def get_payment(self, actor: Actor, payment_id: int) -> PaymentDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundException(f"id={payment_id}")
        self._ensure_visible(actor, payment)
        return PaymentDTO.from_entity(payment)

    async def get_payment_by_booking(self, actor: Actor, booking_id: int) -> PaymentDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_booking_id(booking_id)
        if not payment:
            raise PaymentNotFoundException(f"booking_id={booking_id}")
        self._ensure_visible(actor, payment)
        return PaymentDTO.from_entity(payment)

    async def list_payments(
        self,
        actor: Actor,
        user_id: Optional[int],
        limit: int,
        offset: int,
    ) -> Tuple[List[PaymentDTO], int]:
        """列出某用户的支付；非管理员只能查看自己的"""
        target = user_id or actor.user_id
        if target != actor.user_id and not actor.is_admin:
            raise ForbiddenException("not allowed to list payments of another user")
        async with self._uow_factory(readonly=True) as uow:
            items = await uow.payment_repository.list_by_user(target, skip=offset, limit=limit)
            total = await uow.payment_repository.count_by_user(target)
        return [PaymentDTO.from_entity(p) for p in items], total

    async def confirm_payment(self, actor: Actor, payment_id: int) -> PaymentDTO:
        async with self._uow_factory() as uow:
            current = await uow.payment_repository.get_by_id(payment_id)
            if not current:
                raise PaymentNotFoundException(f"id={payment_id}")
            self._ensure_visible(actor, current)
            domain_service = PaymentDomainService(uow.payment_repository, uow.refund_repository)
            payment = await domain_service.confirm_payment(payment_id)
        logger.info("payment_confirmed", payment_id=payment.id, booking_id=payment.booking_id)
        return PaymentDTO.from_entity(payment)

    async def refund_payment(
        self, actor: Actor, payment_id: int, dto: RefundRequestDTO
    ) -> RefundResultDTO:
        """
        部分或全额退款

        支付行加锁、退款插入与已退金额累加在同一事务内完成
        """
        async with self._uow_factory() as uow:
            current = await uow.payment_repository.get_by_id(payment_id)
            if not current:
                raise PaymentNotFoundException(f"id={payment_id}")
            self._ensure_visible(actor, current)
            domain_service = PaymentDomainService(uow.payment_repository, uow.refund_repository)
            payment, refund = await domain_service.create_refund(payment_id, dto.amount, dto.reason)

        logger.info(
            "payment_refunded",
            payment_id=payment.id,
            refund_id=refund.id,
            amount=str(refund.amount),
            refunded_amount=str(payment.refunded_amount),
            status=payment.status.value,
        )
        return RefundResultDTO(
            payment=PaymentDTO.from_entity(payment),
            refund=RefundDTO.from_entity(refund),
        )

    async def list_refunds(self, actor: Actor, payment_id: int) -> List[RefundDTO]:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
            if not payment:
                raise PaymentNotFoundException(f"id={payment_id}")
            self._ensure_visible(actor, payment)
            refunds = await uow.refund_repository.list_by_payment(payment_id)
        return [RefundDTO.from_entity(r) for r in refunds]
