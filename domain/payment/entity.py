"""
支付领域实体 - 支付聚合根与退款
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from domain.booking.entity import ensure_utc
from domain.common.exceptions import DomainValidationException


class PaymentStatus(str, Enum):
    """支付状态枚举"""
    PENDING = "pending"           # 待支付（由预订创建事件产生）
    COMPLETED = "completed"       # 已支付
    REFUNDED = "refunded"         # 已全额退款
    FAILED = "failed"             # 支付失败


class RefundStatus(str, Enum):
    """退款状态枚举"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class Payment:
    """
    支付聚合根

    业务规则：
    1. 每个预订最多一笔支付（booking_id 唯一）
    2. 金额必须大于0
    3. 0 <= refunded_amount <= amount
    4. 只有 completed 的支付才能退款；退满后状态变为 refunded
    """

    id: Optional[int]
    booking_id: int
    user_id: int
    amount: Decimal
    currency: str
    method: PaymentMethod = PaymentMethod.CARD
    status: PaymentStatus = PaymentStatus.PENDING
    refunded_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    transaction_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.amount = _to_decimal(self.amount)
        self.refunded_amount = _to_decimal(self.refunded_amount or 0)
        if not isinstance(self.method, PaymentMethod):
            self.method = PaymentMethod(self.method)
        if not isinstance(self.status, PaymentStatus):
            self.status = PaymentStatus(self.status)
        self._validate_amount()
        self._validate_currency()
        self.paid_at = ensure_utc(self.paid_at)
        self.refunded_at = ensure_utc(self.refunded_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    def _validate_amount(self) -> None:
        """业务规则：金额必须大于0，已退金额不得越界"""
        if self.amount <= 0:
            raise DomainValidationException(
                f"payment amount must be greater than zero: {self.amount}",
                field="amount"
            )
        if self.refunded_amount < 0 or self.refunded_amount > self.amount:
            raise DomainValidationException(
                f"refunded amount {self.refunded_amount} out of range",
                field="refunded_amount"
            )

    def _validate_currency(self) -> None:
        """业务规则：货币代码必须是3位字母"""
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"invalid currency code: {self.currency}",
                field="currency"
            )
        self.currency = self.currency.upper()

    def mark_completed(self) -> None:
        """pending -> completed，记录支付时间"""
        if self.status != PaymentStatus.PENDING:
            raise DomainValidationException(
                f"cannot move payment from {self.status.value} to completed",
                field="status"
            )
        self.status = PaymentStatus.COMPLETED
        self.paid_at = datetime.now(timezone.utc)
        self.updated_at = self.paid_at

    def mark_failed(self) -> None:
        if self.status != PaymentStatus.PENDING:
            raise DomainValidationException(
                f"cannot move payment from {self.status.value} to failed",
                field="status"
            )
        self.status = PaymentStatus.FAILED
        self.updated_at = datetime.now(timezone.utc)

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refunded_amount

    def can_refund(self) -> bool:
        return self.status == PaymentStatus.COMPLETED and self.refundable_amount > 0

    def apply_refund(self, refund_amount: Decimal) -> None:
        """
        应用退款

        调用方需保证已持有支付行锁；超额退款直接拒绝。
        """
        refund_amount = _to_decimal(refund_amount)
        if refund_amount <= 0:
            raise DomainValidationException(
                f"refund amount must be greater than zero: {refund_amount}",
                field="amount"
            )
        if refund_amount > self.refundable_amount:
            raise DomainValidationException(
                f"refund amount {refund_amount} exceeds refundable {self.refundable_amount}",
                field="amount"
            )

        now = datetime.now(timezone.utc)
        self.refunded_amount += refund_amount
        self.updated_at = now
        if self.refunded_amount == self.amount:
            self.status = PaymentStatus.REFUNDED
            self.refunded_at = now


@dataclass
class Refund:
    """
    退款实体 - Payment 聚合的一部分

    同一笔支付可以多次部分退款，累计不超过支付金额。
    """

    id: Optional[int]
    payment_id: int
    amount: Decimal
    reason: str
    status: RefundStatus = RefundStatus.COMPLETED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.amount = _to_decimal(self.amount)
        if not isinstance(self.status, RefundStatus):
            self.status = RefundStatus(self.status)
        if self.amount <= 0:
            raise DomainValidationException(
                f"refund amount must be greater than zero: {self.amount}",
                field="amount"
            )
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
