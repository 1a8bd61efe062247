"""
Booking DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from application.dto import DTOBase
from domain.booking.availability import TimeSlot
from domain.booking.entity import Booking


class CreateBookingDTO(DTOBase):
    venue_id: int = Field(gt=0)
    owner_id: int = Field(gt=0)
    start_at: datetime
    end_at: datetime
    price: Decimal = Field(gt=0)


class UpdateBookingDTO(DTOBase):
    """未提供的字段保持原值"""
    venue_id: Optional[int] = Field(default=None, gt=0)
    owner_id: Optional[int] = Field(default=None, gt=0)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    price: Optional[Decimal] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class CancelBookingDTO(DTOBase):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("reason must not be blank")
        return v


class BookingDTO(DTOBase):
    id: int
    venue_id: int
    client_id: int
    owner_id: int
    start_at: datetime
    end_at: datetime
    price: Decimal
    status: str
    duration: int = Field(description="时长（分钟）")
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingDTO":
        return cls(
            id=booking.id,
            venue_id=booking.venue_id,
            client_id=booking.client_id,
            owner_id=booking.owner_id,
            start_at=booking.start_at,
            end_at=booking.end_at,
            price=booking.price,
            status=booking.status.value,
            duration=booking.duration_minutes,
            cancel_reason=booking.cancel_reason,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingMutationDTO(DTOBase):
    """
    写操作结果

    event_published=False 表示本地状态已提交，但生命周期事件未能发出
    """
    booking: BookingDTO
    event_published: bool = True
    warning: Optional[str] = Field(default=None, exclude=True)


class SlotDTO(DTOBase):
    start_at: datetime
    end_at: datetime
    duration: int

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> "SlotDTO":
        return cls(
            start_at=slot.start_at,
            end_at=slot.end_at,
            duration=int(slot.duration.total_seconds() // 60),
        )


class AvailabilityDTO(DTOBase):
    venue_id: int
    day: date
    slots: list[SlotDTO]
