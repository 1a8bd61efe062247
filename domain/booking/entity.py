"""
预订领域实体 - 预订聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import (
    DomainValidationException,
    InvalidBookingStateException,
)


class BookingStatus(str, Enum):
    """预订状态枚举"""
    PENDING = "pending"           # 待确认（初始状态）
    CONFIRMED = "confirmed"       # 已确认
    CANCELLED = "cancelled"       # 已取消（终态）
    COMPLETED = "completed"       # 已完成（终态）


# 状态机：未列出的转换一律拒绝
ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class Booking:
    """
    预订聚合根

    业务规则：
    1. start_at < end_at
    2. 价格必须大于0
    3. 状态转换遵循 ALLOWED_TRANSITIONS
    4. 只有 pending 状态可以修改
    5. 取消必须记录原因；记录永不物理删除
    """

    id: Optional[int]
    venue_id: int
    client_id: int
    owner_id: int
    start_at: datetime
    end_at: datetime
    price: Decimal
    status: BookingStatus = BookingStatus.PENDING
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.start_at = ensure_utc(self.start_at)
        self.end_at = ensure_utc(self.end_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
        if not isinstance(self.price, Decimal):
            self.price = Decimal(str(self.price))
        self._validate_interval()
        self._validate_price()

    def _validate_interval(self) -> None:
        if self.start_at is None:
            raise DomainValidationException("start time must be provided", field="start_at")
        if self.end_at is None:
            raise DomainValidationException("end time must be provided", field="end_at")
        if not self.start_at < self.end_at:
            raise DomainValidationException("start time must be before end time", field="start_at")

    def _validate_price(self) -> None:
        if self.price <= 0:
            raise DomainValidationException(
                f"price must be greater than zero: {self.price}",
                field="price"
            )

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def is_active(self) -> bool:
        """已取消的预订不再占用时段"""
        return self.status != BookingStatus.CANCELLED

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def overlaps(self, start_at: datetime, end_at: datetime) -> bool:
        return self.start_at < end_at and self.end_at > start_at

    def can_transition(self, target: BookingStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def _transition(self, target: BookingStatus) -> None:
        if not self.can_transition(target):
            raise InvalidBookingStateException(
                f"cannot move reservation from {self.status.value} to {target.value}",
                status=self.status.value,
            )
        self.status = target
        self.updated_at = datetime.now(timezone.utc)

    def confirm(self) -> None:
        self._transition(BookingStatus.CONFIRMED)

    def complete(self) -> None:
        self._transition(BookingStatus.COMPLETED)

    def cancel(self, reason: str) -> None:
        """
        取消预订

        业务规则：已取消或已完成的预订不能再取消；原因必填
        """
        if self.is_terminal():
            raise InvalidBookingStateException(
                "cannot cancel reservation",
                status=self.status.value,
            )
        reason = (reason or "").strip()
        if not reason:
            raise DomainValidationException("cancellation reason is required", field="reason")
        self._transition(BookingStatus.CANCELLED)
        self.cancel_reason = reason

    def ensure_updatable(self) -> None:
        if self.status != BookingStatus.PENDING:
            raise InvalidBookingStateException(
                "only pending reservations can be updated. Current status: " + self.status.value,
                status=self.status.value,
            )

    def apply_changes(
        self,
        *,
        venue_id: Optional[int] = None,
        owner_id: Optional[int] = None,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        price: Optional[Decimal] = None,
    ) -> None:
        """合并修改字段（未提供的字段保持原值），并重新校验区间与价格。"""
        self.ensure_updatable()
        if venue_id is not None:
            self.venue_id = venue_id
        if owner_id is not None:
            self.owner_id = owner_id
        if start_at is not None:
            self.start_at = ensure_utc(start_at)
        if end_at is not None:
            self.end_at = ensure_utc(end_at)
        if price is not None:
            self.price = Decimal(str(price))
        self._validate_interval()
        self._validate_price()
        self.updated_at = datetime.now(timezone.utc)
