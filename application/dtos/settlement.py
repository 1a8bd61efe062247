"""
Booking lifecycle event payloads as seen by the payment side.

The reservation side emits client_id/price; older producers used
user_id/amount. Both spellings are accepted.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BookingCreatedMessage(BaseModel):
    booking_id: int = Field(gt=0)
    user_id: int = Field(gt=0, validation_alias=AliasChoices("user_id", "client_id"))
    amount: Decimal = Field(gt=0, validation_alias=AliasChoices("amount", "price"))
    method: Optional[Literal["card", "cash"]] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    event_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class BookingCancelledMessage(BaseModel):
    booking_id: int = Field(gt=0)
    reason: Optional[str] = None
    event_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")
