"""
结算应用服务：把预订生命周期事件落到支付库

两个处理方法都是幂等的，重复投递同一事件不会产生第二笔支付或第二笔退款。
"""
from __future__ import annotations

from enum import Enum
from typing import Callable

from application.dtos.settlement import BookingCancelledMessage, BookingCreatedMessage
from core.config import SettlementSettings
from core.logging_config import get_logger
from domain.common.unit_of_work import PaymentUnitOfWork
from domain.payment.entity import PaymentMethod
from domain.payment.service import PaymentDomainService


logger = get_logger(__name__)


class SettlementOutcome(str, Enum):
    PAYMENT_CREATED = "payment_created"
    ALREADY_SETTLED = "already_settled"
    REFUNDED = "refunded"
    SKIPPED = "skipped"


class SettlementService:
    def __init__(
        self,
        uow_factory: Callable[..., PaymentUnitOfWork],
        settings: SettlementSettings,
    ) -> None:
        self._uow_factory = uow_factory
        self._settings = settings

    async def handle_booking_created(self, msg: BookingCreatedMessage) -> SettlementOutcome:
        """预订创建 -> 以预订ID为键创建 pending 支付"""
        method = PaymentMethod(msg.method or self._settings.default_method)
        currency = (msg.currency or self._settings.default_currency).upper()

        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_repository, uow.refund_repository)
            payment, created = await domain_service.ensure_pending_payment(
                booking_id=msg.booking_id,
                user_id=msg.user_id,
                amount=msg.amount,
                currency=currency,
                method=method,
            )

        if not created:
            logger.info(
                "settlement_payment_exists",
                booking_id=msg.booking_id,
                payment_id=payment.id,
                event_id=msg.event_id,
            )
            return SettlementOutcome.ALREADY_SETTLED

        logger.info(
            "settlement_payment_created",
            booking_id=msg.booking_id,
            payment_id=payment.id,
            amount=str(payment.amount),
            currency=payment.currency,
            event_id=msg.event_id,
        )
        return SettlementOutcome.PAYMENT_CREATED

    async def handle_booking_cancelled(self, msg: BookingCancelledMessage) -> SettlementOutcome:
        """预订取消 -> 退还剩余全部金额；无支付或未完成时跳过"""
        async with self._uow_factory() as uow:
            domain_service = PaymentDomainService(uow.payment_repository, uow.refund_repository)
            result = await domain_service.refund_remaining_for_booking(
                msg.booking_id, self._settings.refund_reason
            )

        if result is None:
            logger.info("settlement_refund_skipped", booking_id=msg.booking_id, event_id=msg.event_id)
            return SettlementOutcome.SKIPPED

        payment, refund = result
        logger.info(
            "settlement_refund_created",
            booking_id=msg.booking_id,
            payment_id=payment.id,
            refund_id=refund.id,
            amount=str(refund.amount),
            event_id=msg.event_id,
        )
        return SettlementOutcome.REFUNDED
