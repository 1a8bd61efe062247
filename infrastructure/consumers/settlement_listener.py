"""Settlement listeners.

One consumer and one asyncio task per lifecycle topic. Messages of a topic are
handled strictly one after another; the offset is committed only after the
payment store has been updated (or the message has been dead-lettered).
"""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from application.dtos.settlement import BookingCancelledMessage, BookingCreatedMessage
from application.services.settlement_service import SettlementService
from core.config import SettlementSettings
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from infrastructure.external.messaging.base import Consumer, Envelope, HandleResult
from infrastructure.external.messaging.exceptions import NonRetryableError, RetryableError


logger = get_logger(__name__)

ConsumerFactory = Callable[[], Consumer]


class SettlementListener:
    STOP_TIMEOUT_S = 10.0

    def __init__(
        self,
        service: SettlementService,
        consumer_factory: ConsumerFactory,
        settings: SettlementSettings,
    ) -> None:
        self.service = service
        self.consumer_factory = consumer_factory
        self.settings = settings
        self._consumers: Dict[str, Consumer] = {}
        self._tasks: List[asyncio.Task] = []

    async def handle_created(self, env: Envelope) -> HandleResult:
        try:
            msg = BookingCreatedMessage.model_validate(env.payload)
        except ValidationError as exc:
            raise NonRetryableError(f"invalid booking.created payload: {exc.error_count()} errors") from exc
        return await self._run(self.service.handle_booking_created, msg)

    async def handle_cancelled(self, env: Envelope) -> HandleResult:
        try:
            msg = BookingCancelledMessage.model_validate(env.payload)
        except ValidationError as exc:
            raise NonRetryableError(f"invalid booking.cancelled payload: {exc.error_count()} errors") from exc
        return await self._run(self.service.handle_booking_cancelled, msg)

    async def _run(self, handler, msg) -> HandleResult:
        try:
            await handler(msg)
        except BusinessException as exc:
            # 业务规则拒绝的消息重试也不会成功
            logger.warning(
                "settlement_message_rejected",
                booking_id=msg.booking_id,
                code=exc.code,
                error=exc.message,
            )
            return HandleResult.DROP
        except SQLAlchemyError as exc:
            raise RetryableError(f"payment store error: {exc}") from exc
        return HandleResult.ACK

    def _handlers(self) -> Dict[str, Consumer.Handler]:
        return {
            self.settings.topic_created: self.handle_created,
            self.settings.topic_cancelled: self.handle_cancelled,
        }

    async def _consume(self, topic: str, consumer: Consumer, handler: Consumer.Handler) -> None:
        try:
            await consumer.run(handler)
        except asyncio.CancelledError:
            logger.info("settlement_listener_cancelled", topic=topic)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("settlement_listener_crashed", topic=topic, error=str(exc))
            raise

    def start(self) -> None:
        if self._tasks:
            return
        for topic, handler in self._handlers().items():
            consumer = self.consumer_factory()
            consumer.subscribe([topic], self.settings.group_id)
            self._consumers[topic] = consumer
            self._tasks.append(
                asyncio.create_task(self._consume(topic, consumer, handler), name=f"settlement:{topic}")
            )
        logger.info(
            "settlement_listeners_started",
            topics=list(self._consumers),
            group_id=self.settings.group_id,
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        for consumer in self._consumers.values():
            await consumer.stop()
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=timeout or self.STOP_TIMEOUT_S)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._consumers.clear()
        logger.info("settlement_listeners_stopped")

    async def wait(self) -> None:
        """阻塞直到任一监听任务结束；异常会向上传播"""
        if not self._tasks:
            return
        done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()
