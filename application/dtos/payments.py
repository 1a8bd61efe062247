"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, field_validator

from application.dto import DTOBase
from domain.payment.entity import Payment, Refund


class CreatePaymentDTO(DTOBase):
    booking_id: int = Field(gt=0)
    amount: Decimal = Field(gt=0)
    currency: Optional[str] = None
    method: Literal["card", "cash"] = "card"

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        u = v.strip().upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class RefundRequestDTO(DTOBase):
    amount: Decimal = Field(gt=0)
    reason: str = Field(min_length=5, max_length=500)

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 5:
            raise ValueError("reason must be at least 5 characters")
        return v


class PaymentDTO(DTOBase):
    id: int
    booking_id: int
    user_id: int
    amount: Decimal
    currency: str
    method: str
    status: str
    refunded_amount: Decimal
    transaction_id: str
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, payment: Payment) -> "PaymentDTO":
        return cls(
            id=payment.id,
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


class RefundDTO(DTOBase):
    id: int
    payment_id: int
    amount: Decimal
    reason: str
    status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, refund: Refund) -> "RefundDTO":
        return cls(
            id=refund.id,
            payment_id=refund.payment_id,
            amount=refund.amount,
            reason=refund.reason,
            status=refund.status.value,
            created_at=refund.created_at,
        )


class RefundResultDTO(DTOBase):
    payment: PaymentDTO
    refund: RefundDTO
