"""Infrastructure adapter that implements the application BookingEventPublisher
port on top of the messaging Publisher.

Events are keyed by booking id so that every event of one booking lands on the
same partition and is consumed in order.
"""
from __future__ import annotations

import dataclasses
from typing import Dict, Optional

import structlog

from application.ports.events import BookingEventPublisher, EventPublishError
from domain.booking.events import BookingCancelled, BookingCreated, BookingEvent
from infrastructure.external.messaging.base import Envelope, Publisher
from infrastructure.external.messaging.envelope import H_CORR_ID, H_EVENT_TYPE
from infrastructure.external.messaging.exceptions import MessagingError


EVENT_CREATED = "booking.created"
EVENT_CANCELLED = "booking.cancelled"


class MessagingBookingEventPublisher(BookingEventPublisher):
    def __init__(self, publisher: Publisher, topic_created: str, topic_cancelled: str):
        self.publisher = publisher
        self.topic_created = topic_created
        self.topic_cancelled = topic_cancelled

    @staticmethod
    def _headers(event_type: str) -> Dict[str, bytes]:
        headers = {H_EVENT_TYPE: event_type.encode("utf-8")}
        corr_id: Optional[str] = structlog.contextvars.get_contextvars().get("request_id")
        if corr_id:
            headers[H_CORR_ID] = str(corr_id).encode("utf-8")
        return headers

    async def _publish(self, topic: str, event_type: str, event: BookingEvent) -> None:
        env = Envelope(
            payload=dataclasses.asdict(event),
            key=str(event.booking_id).encode("utf-8"),
            headers=self._headers(event_type),
        )
        try:
            await self.publisher.publish(topic, env)
        except MessagingError as exc:
            raise EventPublishError(f"{event_type} publish failed: {exc}") from exc

    async def publish_created(self, event: BookingCreated) -> None:
        await self._publish(self.topic_created, EVENT_CREATED, event)

    async def publish_cancelled(self, event: BookingCancelled) -> None:
        await self._publish(self.topic_cancelled, EVENT_CANCELLED, event)
