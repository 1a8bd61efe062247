"""
预订仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.booking.entity import Booking, BookingStatus, ensure_utc
from domain.booking.repository import BookingRepository
from domain.common.exceptions import BookingConflictException
from infrastructure.models.booking import BOOKING_NO_OVERLAP_CONSTRAINT, BookingModel


logger = get_logger(__name__)

# PostgreSQL exclusion_violation
_EXCLUSION_VIOLATION = "23P01"


def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "sqlstate", None) == _EXCLUSION_VIOLATION:
        return True
    if getattr(orig, "pgcode", None) == _EXCLUSION_VIOLATION:
        return True
    return BOOKING_NO_OVERLAP_CONSTRAINT in str(exc)


class SQLAlchemyBookingRepository(BookingRepository):
    """预订仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: BookingModel) -> Booking:
        return Booking(
            id=model.id,
            venue_id=model.venue_id,
            client_id=model.client_id,
            owner_id=model.owner_id,
            start_at=model.start_at,
            end_at=model.end_at,
            price=Decimal(str(model.price)),
            status=BookingStatus(model.status),
            cancel_reason=model.cancel_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Booking) -> BookingModel:
        return BookingModel(
            id=entity.id,
            venue_id=entity.venue_id,
            client_id=entity.client_id,
            owner_id=entity.owner_id,
            start_at=entity.start_at,
            end_at=entity.end_at,
            price=entity.price,
            status=entity.status.value,
            cancel_reason=entity.cancel_reason,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def _conflict(self, booking: Booking) -> BookingConflictException:
        logger.warning(
            "booking_overlap_rejected_by_store",
            venue_id=booking.venue_id,
            start_at=booking.start_at.isoformat(),
            end_at=booking.end_at.isoformat(),
        )
        return BookingConflictException(booking.venue_id, booking.start_at, booking.end_at)

    async def create(self, booking: Booking) -> Booking:
        """创建预订；排他约束冲突转换为 BookingConflictException"""
        try:
            db_booking = self._to_model(booking)
            self.session.add(db_booking)
            await self.session.flush()
            await self.session.refresh(db_booking)
        except IntegrityError as e:
            await self.session.rollback()
            if _is_overlap_violation(e):
                raise self._conflict(booking)
            raise
        logger.info(
            "booking_row_created",
            booking_id=db_booking.id,
            venue_id=db_booking.venue_id,
        )
        return self._to_entity(db_booking)

    async def get_by_id(self, booking_id: int, *, for_update: bool = False) -> Optional[Booking]:
        query = select(BookingModel).where(BookingModel.id == booking_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_booking = result.scalar_one_or_none()
        return self._to_entity(db_booking) if db_booking else None

    async def update(self, booking: Booking) -> Booking:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.id == booking.id)
        )
        db_booking = result.scalar_one_or_none()
        if not db_booking:
            raise ValueError(f"Booking with id {booking.id} not found")

        db_booking.venue_id = booking.venue_id
        db_booking.owner_id = booking.owner_id
        db_booking.start_at = booking.start_at
        db_booking.end_at = booking.end_at
        db_booking.price = booking.price
        db_booking.status = booking.status.value
        db_booking.cancel_reason = booking.cancel_reason
        db_booking.updated_at = booking.updated_at

        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if _is_overlap_violation(e):
                raise self._conflict(booking)
            raise
        await self.session.refresh(db_booking)
        return self._to_entity(db_booking)

    async def list_by_client(self, client_id: int, skip: int = 0, limit: int = 100) -> List[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.client_id == client_id)
            .order_by(BookingModel.start_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_client(self, client_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(BookingModel).where(BookingModel.client_id == client_id)
        )
        return int(result.scalar_one())

    async def list_for_venue_between(
        self,
        venue_id: int,
        start_at: datetime,
        end_at: datetime,
        *,
        include_cancelled: bool = False,
    ) -> List[Booking]:
        query = select(BookingModel).where(
            BookingModel.venue_id == venue_id,
            BookingModel.start_at < ensure_utc(end_at),
            BookingModel.end_at > ensure_utc(start_at),
        )
        if not include_cancelled:
            query = query.where(BookingModel.status != BookingStatus.CANCELLED.value)
        result = await self.session.execute(query.order_by(BookingModel.start_at))
        return [self._to_entity(m) for m in result.scalars().all()]
