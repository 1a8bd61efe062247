"""
支付领域服务 - 支付与退款账本的业务规则
"""
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone

from .entity import Payment, PaymentMethod, PaymentStatus, Refund, RefundStatus
from .repository import PaymentRepository, RefundRepository
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


class PaymentAlreadyExistsException(BusinessException):
    """预订已存在支付记录"""
    def __init__(self, booking_id: int):
        super().__init__(
            code=BusinessCode.PAYMENT_ALREADY_EXISTS,
            message=f"payment for reservation {booking_id} already exists",
            error_type="PaymentAlreadyExists",
            details={"booking_id": booking_id},
        )


class PaymentNotFoundException(BusinessException):
    """支付记录不存在"""
    def __init__(self, identifier: str):
        super().__init__(
            code=BusinessCode.PAYMENT_NOT_FOUND,
            message=f"payment not found: {identifier}",
            error_type="PaymentNotFound",
        )


class RefundExceedsPaymentException(BusinessException):
    """退款金额超过可退金额"""
    def __init__(self, refund_amount: Decimal, available: Decimal):
        super().__init__(
            code=BusinessCode.REFUND_EXCEEDS_PAYMENT,
            message=f"refund amount {refund_amount} exceeds refundable amount {available}",
            error_type="RefundExceedsPayment",
            details={"requested": str(refund_amount), "available": str(available)},
            field="amount",
        )


class PaymentNotCompletedException(BusinessException):
    """只有已完成的支付可以退款"""
    def __init__(self, status: PaymentStatus):
        super().__init__(
            code=BusinessCode.PAYMENT_NOT_COMPLETED,
            message="only completed payments can be refunded",
            error_type="PaymentNotCompleted",
            details={"status": status.value},
        )


class InvalidPaymentStateException(BusinessException):
    def __init__(self, status: PaymentStatus, target: str):
        super().__init__(
            code=BusinessCode.PAYMENT_INVALID_STATE,
            message=f"cannot move payment from {status.value} to {target}",
            error_type="InvalidPaymentState",
            details={"status": status.value},
            field="status",
        )


class PaymentDomainService:
    """
    支付领域服务

    职责：
    1. 创建支付（每个预订唯一）及幂等的 pending 支付创建
    2. 支付确认
    3. 退款规则：仅 completed 可退，累计不超过支付金额，退满即 refunded
    """

    def __init__(
        self,
        payment_repository: PaymentRepository,
        refund_repository: RefundRepository
    ):
        self.payment_repository = payment_repository
        self.refund_repository = refund_repository

    def _build_payment(
        self,
        booking_id: int,
        user_id: int,
        amount: Decimal,
        currency: str,
        method: PaymentMethod,
        status: PaymentStatus,
    ) -> Payment:
        now = datetime.now(timezone.utc)
        return Payment(
            id=None,
            booking_id=booking_id,
            user_id=user_id,
            amount=amount,
            currency=currency,
            method=method,
            status=status,
            paid_at=now if status == PaymentStatus.COMPLETED else None,
            created_at=now,
            updated_at=now,
        )

    async def create_payment(
        self,
        booking_id: int,
        user_id: int,
        amount: Decimal,
        currency: str,
        method: PaymentMethod = PaymentMethod.CARD,
        status: PaymentStatus = PaymentStatus.COMPLETED,
    ) -> Payment:
        """
        创建支付记录

        业务规则：
        1. 同一预订不能重复创建支付
        2. 以 completed 创建时记录 paid_at
        """
        if status not in (PaymentStatus.PENDING, PaymentStatus.COMPLETED):
            raise InvalidPaymentStateException(status, "created")
        if await self.payment_repository.get_by_booking_id(booking_id):
            raise PaymentAlreadyExistsException(booking_id)

        payment = self._build_payment(booking_id, user_id, amount, currency, method, status)
        return await self.payment_repository.create(payment)

    async def ensure_pending_payment(
        self,
        booking_id: int,
        user_id: int,
        amount: Decimal,
        currency: str,
        method: PaymentMethod = PaymentMethod.CARD,
    ) -> tuple[Payment, bool]:
        """
        以预订ID为键幂等地创建 pending 支付

        返回 (payment, created)。已存在（包括并发插入时撞唯一约束）视为成功。
        """
        existing = await self.payment_repository.get_by_booking_id(booking_id)
        if existing:
            return existing, False

        payment = self._build_payment(
            booking_id, user_id, amount, currency, method, PaymentStatus.PENDING
        )
        try:
            created = await self.payment_repository.create(payment)
        except PaymentAlreadyExistsException:
            existing = await self.payment_repository.get_by_booking_id(booking_id)
            if existing is None:
                raise
            return existing, False
        return created, True

    async def confirm_payment(self, payment_id: int) -> Payment:
        """
        确认支付

        pending -> completed；已是 completed 时直接返回
        """
        payment = await self.payment_repository.get_by_id(payment_id, for_update=True)
        if not payment:
            raise PaymentNotFoundException(f"id={payment_id}")

        if payment.status == PaymentStatus.COMPLETED:
            return payment
        if payment.status != PaymentStatus.PENDING:
            raise InvalidPaymentStateException(payment.status, PaymentStatus.COMPLETED.value)

        payment.mark_completed()
        return await self.payment_repository.update(payment)

    async def _refund_locked(self, payment: Payment, amount: Decimal, reason: str) -> tuple[Payment, Refund]:
        if payment.status != PaymentStatus.COMPLETED:
            raise PaymentNotCompletedException(payment.status)

        refundable = payment.refundable_amount
        if amount > refundable:
            raise RefundExceedsPaymentException(amount, refundable)

        now = datetime.now(timezone.utc)
        refund = Refund(
            id=None,
            payment_id=payment.id,
            amount=amount,
            reason=reason,
            status=RefundStatus.COMPLETED,
            created_at=now,
            updated_at=now,
        )
        created_refund = await self.refund_repository.create(refund)

        payment.apply_refund(amount)
        updated_payment = await self.payment_repository.update(payment)
        return updated_payment, created_refund

    async def create_refund(
        self,
        payment_id: int,
        amount: Decimal,
        reason: str,
    ) -> tuple[Payment, Refund]:
        """
        创建退款

        业务规则：
        1. 支付必须存在且为 completed
        2. 退款金额不能超过剩余可退金额
        3. 退款记录与已退金额在同一事务内写入（支付行加锁）

        返回：(更新后的Payment, 新创建的Refund)
        """
        payment = await self.payment_repository.get_by_id(payment_id, for_update=True)
        if not payment:
            raise PaymentNotFoundException(f"id={payment_id}")
        return await self._refund_locked(payment, amount, reason)

    async def refund_remaining_for_booking(
        self,
        booking_id: int,
        reason: str,
    ) -> Optional[tuple[Payment, Refund]]:
        """
        预订取消时退还剩余全部金额

        无支付、未完成或已无可退金额时不做任何事，返回 None。
        """
        payment = await self.payment_repository.get_by_booking_id(booking_id, for_update=True)
        if payment is None or not payment.can_refund():
            return None
        return await self._refund_locked(payment, payment.refundable_amount, reason)
