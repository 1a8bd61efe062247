"""
预订应用服务（application/services）- 编排预订用例

事务提交之后才发布生命周期事件；发布失败不回滚，返回降级结果。
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

from application.dtos.auth import Actor, Role
from application.dtos.bookings import (
    AvailabilityDTO,
    BookingDTO,
    BookingMutationDTO,
    CancelBookingDTO,
    CreateBookingDTO,
    SlotDTO,
    UpdateBookingDTO,
)
from application.ports.events import BookingEventPublisher, EventPublishError
from application.ports.venues import VenueScheduleProvider
from core.logging_config import get_logger
from domain.booking.availability import AvailabilityEngine
from domain.booking.events import BookingCancelled, BookingCreated, BookingEvent
from domain.booking.service import BookingDomainService
from domain.common.exceptions import BookingNotFoundException, ForbiddenException
from domain.common.unit_of_work import BookingUnitOfWork


logger = get_logger(__name__)

PUBLISH_WARNING = "reservation saved, but the lifecycle event could not be published"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingApplicationService:
    """预订应用服务"""

    def __init__(
        self,
        uow_factory: Callable[..., BookingUnitOfWork],
        venues: VenueScheduleProvider,
        publisher: BookingEventPublisher,
        engine: AvailabilityEngine,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._uow_factory = uow_factory
        self._venues = venues
        self._publisher = publisher
        self._engine = engine
        self._clock = clock

    async def _publish(self, events: List[BookingEvent]) -> bool:
        """逐个发布事件；任何失败只记录日志并返回 False"""
        published = True
        for event in events:
            try:
                if isinstance(event, BookingCreated):
                    await self._publisher.publish_created(event)
                elif isinstance(event, BookingCancelled):
                    await self._publisher.publish_cancelled(event)
                else:
                    continue
                logger.info(
                    "booking_event_published",
                    booking_id=event.booking_id,
                    event_type=type(event).__name__,
                    event_id=event.event_id,
                )
            except EventPublishError as exc:
                published = False
                logger.error(
                    "booking_event_publish_failed",
                    booking_id=event.booking_id,
                    event_type=type(event).__name__,
                    event_id=event.event_id,
                    error=str(exc),
                )
        return published

    def _mutation_result(self, booking, published: bool) -> BookingMutationDTO:
        return BookingMutationDTO(
            booking=BookingDTO.from_entity(booking),
            event_published=published,
            warning=None if published else PUBLISH_WARNING,
        )

    async def create_booking(self, actor: Actor, dto: CreateBookingDTO) -> BookingMutationDTO:
        """创建预订：仅客户或管理员；客户ID取自令牌"""
        if actor.role not in (Role.CLIENT, Role.ADMIN):
            raise ForbiddenException("only clients can create reservations")

        venue = await self._venues.get_schedule(dto.venue_id)

        async with self._uow_factory() as uow:
            domain_service = BookingDomainService(uow.booking_repository, self._engine, self._clock)
            booking = await domain_service.create_booking(
                venue=venue,
                client_id=actor.user_id,
                owner_id=dto.owner_id,
                start_at=dto.start_at,
                end_at=dto.end_at,
                price=dto.price,
            )
            events = domain_service.clear_events()

        logger.info(
            "booking_created",
            booking_id=booking.id,
            venue_id=booking.venue_id,
            client_id=booking.client_id,
        )
        published = await self._publish(events)
        return self._mutation_result(booking, published)

    async def update_booking(
        self, actor: Actor, booking_id: int, dto: UpdateBookingDTO
    ) -> BookingMutationDTO:
        """修改预订（仅 pending，仅预订客户或管理员）；不产生事件"""
        async with self._uow_factory(readonly=True) as uow:
            current = await uow.booking_repository.get_by_id(booking_id)
        if not current:
            raise BookingNotFoundException(booking_id)
        if not actor.is_admin and current.client_id != actor.user_id:
            raise ForbiddenException("only the reservation's client can update it")

        current.ensure_updatable()
        venue = await self._venues.get_schedule(dto.venue_id or current.venue_id)

        async with self._uow_factory() as uow:
            domain_service = BookingDomainService(uow.booking_repository, self._engine, self._clock)
            booking = await domain_service.update_booking(
                booking_id,
                venue,
                owner_id=dto.owner_id,
                start_at=dto.start_at,
                end_at=dto.end_at,
                price=dto.price,
            )

        logger.info("booking_updated", booking_id=booking.id, venue_id=booking.venue_id)
        return self._mutation_result(booking, True)

    async def cancel_booking(
        self, actor: Actor, booking_id: int, dto: CancelBookingDTO
    ) -> BookingMutationDTO:
        """取消预订：预订客户、场馆所有者或管理员"""
        async with self._uow_factory() as uow:
            current = await uow.booking_repository.get_by_id(booking_id)
            if not current:
                raise BookingNotFoundException(booking_id)
            if not actor.is_admin and actor.user_id not in (current.client_id, current.owner_id):
                raise ForbiddenException("not allowed to cancel this reservation")

            domain_service = BookingDomainService(uow.booking_repository, self._engine, self._clock)
            booking = await domain_service.cancel_booking(booking_id, dto.reason)
            events = domain_service.clear_events()

        logger.info("booking_cancelled", booking_id=booking.id, reason=booking.cancel_reason)
        published = await self._publish(events)
        return self._mutation_result(booking, published)

    async def get_booking(self, booking_id: int) -> BookingDTO:
        async with self._uow_factory(readonly=True) as uow:
            booking = await uow.booking_repository.get_by_id(booking_id)
            if not booking:
                raise BookingNotFoundException(booking_id)
            return BookingDTO.from_entity(booking)

    async def list_client_bookings(
        self, actor: Actor, limit: int, offset: int
    ) -> Tuple[List[BookingDTO], int]:
        async with self._uow_factory(readonly=True) as uow:
            items = await uow.booking_repository.list_by_client(actor.user_id, skip=offset, limit=limit)
            total = await uow.booking_repository.count_by_client(actor.user_id)
            return [BookingDTO.from_entity(b) for b in items], total

    async def get_availability(self, venue_id: int, day: Optional[date] = None) -> AvailabilityDTO:
        """某日营业窗口内的空闲时段；未指定日期时取场馆时区的今天"""
        venue = await self._venues.get_schedule(venue_id)
        day = day or self._engine.local_date(self._clock())
        day_start, day_end = self._engine.day_bounds(day)
        async with self._uow_factory(readonly=True) as uow:
            bookings = await uow.booking_repository.list_for_venue_between(venue_id, day_start, day_end)
        slots = self._engine.free_slots(venue.weekly, day, bookings)
        return AvailabilityDTO(
            venue_id=venue_id,
            day=day,
            slots=[SlotDTO.from_slot(s) for s in slots],
        )

    async def list_venue_bookings(
        self,
        actor: Actor,
        venue_id: int,
        day: Optional[date] = None,
    ) -> List[BookingDTO]:
        """场馆所有者或管理员查看场馆预订（含已取消）"""
        venue = await self._venues.get_schedule(venue_id)
        if not actor.is_admin and venue.owner_id != actor.user_id:
            raise ForbiddenException("only the venue owner can list its reservations")

        day = day or self._engine.local_date(self._clock())
        day_start, day_end = self._engine.day_bounds(day)
        async with self._uow_factory(readonly=True) as uow:
            bookings = await uow.booking_repository.list_for_venue_between(
                venue_id, day_start, day_end, include_cancelled=True
            )
        return [BookingDTO.from_entity(b) for b in bookings]
