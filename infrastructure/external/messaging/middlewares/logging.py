from __future__ import annotations

from typing import Optional

from core.logging_config import get_logger

from ..base import ConsumeMiddleware, Envelope, HandleResult, PublishMiddleware, PublishResult
from ..envelope import get_attempts


class LoggingMiddleware(PublishMiddleware, ConsumeMiddleware):
    def __init__(self, logger=None) -> None:
        self.log = logger or get_logger("messaging")

    def before_publish(self, topic: str, env: Envelope) -> Envelope:  # type: ignore[override]
        self.log.debug(
            "message_publishing",
            topic=topic,
            key=(env.key or b"").decode("utf-8", errors="replace"),
            headers=list(env.headers.keys()),
        )
        return env

    def after_publish(self, topic: str, env: Envelope, result: PublishResult) -> None:  # type: ignore[override]
        self.log.info(
            "message_published",
            topic=topic,
            partition=result.partition,
            offset=result.offset,
            key=(env.key or b"").decode("utf-8", errors="replace"),
        )

    def before_handle(self, topic: str, partition: int, offset: int, env: Envelope) -> Envelope:  # type: ignore[override]
        self.log.debug(
            "message_handling",
            topic=topic,
            partition=partition,
            offset=offset,
            attempt=get_attempts(env.headers) + 1,
        )
        return env

    def after_handle(
        self,
        topic: str,
        partition: int,
        offset: int,
        env: Envelope,
        result: HandleResult,
        exc: Optional[BaseException] = None,
    ) -> None:  # type: ignore[override]
        log = self.log.error if exc else self.log.info
        log(
            "message_handled",
            topic=topic,
            partition=partition,
            offset=offset,
            result=result.value,
            error=str(exc) if exc else None,
        )
