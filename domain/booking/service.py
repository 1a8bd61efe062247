"""
预订领域服务 - 预订状态机与冲突校验编排
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from .availability import AvailabilityEngine
from .entity import Booking, BookingStatus, ensure_utc
from .events import BookingCancelled, BookingCreated
from .repository import BookingRepository
from .schedule import VenueSchedule
from domain.common.exceptions import (
    BookingNotFoundException,
    DomainValidationException,
    ScheduleMismatchException,
    VenueOwnerMismatchException,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingDomainService:
    """
    预订领域服务

    职责：
    1. 创建/修改时的字段校验与冲突校验（依赖 AvailabilityEngine）
    2. 取消的状态转换
    3. 收集领域事件（由应用层在事务提交后发布）
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        engine: AvailabilityEngine,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.booking_repository = booking_repository
        self.engine = engine
        self.clock = clock
        self.events: List = []

    def _ensure_bookable(
        self,
        venue: VenueSchedule,
        owner_id: int,
        start_at: datetime,
        end_at: datetime,
    ) -> None:
        if owner_id is None or owner_id <= 0:
            raise DomainValidationException("owner ID must be greater than zero", field="owner_id")
        if not start_at < end_at:
            raise DomainValidationException("start time must be before end time", field="start_at")
        if start_at < self.clock():
            raise DomainValidationException("start time cannot be in the past", field="start_at")
        if not venue.is_active:
            raise ScheduleMismatchException(
                "venue is not accepting reservations",
                details={"venue_id": venue.venue_id},
            )
        if venue.owner_id is not None and venue.owner_id != owner_id:
            raise VenueOwnerMismatchException(venue.venue_id, owner_id)

    async def _check_against_venue(
        self,
        venue: VenueSchedule,
        start_at: datetime,
        end_at: datetime,
        exclude_id: Optional[int] = None,
    ) -> None:
        day_start, day_end = self.engine.day_bounds(self.engine.local_date(start_at))
        existing = await self.booking_repository.list_for_venue_between(
            venue.venue_id, day_start, day_end
        )
        self.engine.validate_candidate(
            venue.weekly,
            start_at,
            end_at,
            existing,
            venue_id=venue.venue_id,
            exclude_id=exclude_id,
        )

    async def create_booking(
        self,
        venue: VenueSchedule,
        client_id: int,
        owner_id: int,
        start_at: datetime,
        end_at: datetime,
        price: Decimal,
    ) -> Booking:
        """
        创建预订（状态 pending）

        业务规则：
        1. owner/venue/时间字段齐全，start 不在过去，start < end，价格 > 0
        2. 场馆营业时间与已有预订校验通过
        """
        start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
        if client_id is None or client_id <= 0:
            raise DomainValidationException("client ID must be greater than zero", field="client_id")
        self._ensure_bookable(venue, owner_id, start_at, end_at)

        now = self.clock()
        booking = Booking(
            id=None,
            venue_id=venue.venue_id,
            client_id=client_id,
            owner_id=owner_id,
            start_at=start_at,
            end_at=end_at,
            price=price,
            status=BookingStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        await self._check_against_venue(venue, booking.start_at, booking.end_at)

        # 存储层排他约束是并发下的最终裁决，冲突时仓储抛出 BookingConflictException
        created = await self.booking_repository.create(booking)

        self.events.append(BookingCreated(
            booking_id=created.id,
            status=created.status.value,
            venue_id=created.venue_id,
            client_id=created.client_id,
            owner_id=created.owner_id,
            start_at=created.start_at,
            end_at=created.end_at,
            price=created.price,
        ))
        return created

    async def update_booking(
        self,
        booking_id: int,
        venue: VenueSchedule,
        *,
        owner_id: Optional[int] = None,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        price: Optional[Decimal] = None,
    ) -> Booking:
        """
        修改预订（仅 pending）

        venue 为修改后的目标场馆快照；冲突校验排除自身原区间。
        """
        booking = await self.booking_repository.get_by_id(booking_id, for_update=True)
        if not booking:
            raise BookingNotFoundException(booking_id)
        booking.ensure_updatable()

        if owner_id is not None and owner_id <= 0:
            raise DomainValidationException("owner ID must be greater than zero", field="owner_id")
        if price is not None and price <= 0:
            raise DomainValidationException("price must be greater than zero", field="price")

        start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
        final_start = start_at or booking.start_at
        final_end = end_at or booking.end_at
        final_owner = owner_id if owner_id is not None else booking.owner_id
        self._ensure_bookable(venue, final_owner, final_start, final_end)

        await self._check_against_venue(venue, final_start, final_end, exclude_id=booking.id)

        booking.apply_changes(
            venue_id=venue.venue_id,
            owner_id=owner_id,
            start_at=start_at,
            end_at=end_at,
            price=price,
        )
        return await self.booking_repository.update(booking)

    async def cancel_booking(self, booking_id: int, reason: str) -> Booking:
        """
        取消预订

        业务规则：已取消/已完成不可取消；原因必填
        """
        booking = await self.booking_repository.get_by_id(booking_id, for_update=True)
        if not booking:
            raise BookingNotFoundException(booking_id)

        booking.cancel(reason)
        updated = await self.booking_repository.update(booking)

        self.events.append(BookingCancelled(
            booking_id=updated.id,
            status=updated.status.value,
            reason=updated.cancel_reason or "",
        ))
        return updated

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
