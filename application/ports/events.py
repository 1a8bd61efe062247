"""
Booking event publisher port (application/ports).

Application depends on this Protocol; infrastructure implements the Kafka
adapter. Failures are raised synchronously so the caller can degrade.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.booking.events import BookingCancelled, BookingCreated


class EventPublishError(Exception):
    """生命周期事件未能发出（本地状态已提交，不回滚）"""


@runtime_checkable
class BookingEventPublisher(Protocol):
    async def publish_created(self, event: BookingCreated) -> None: ...

    async def publish_cancelled(self, event: BookingCancelled) -> None: ...
