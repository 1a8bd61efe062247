"""Provider-independent message handling.

Decodes a raw record, runs consume middlewares, calls the handler with bounded
in-place retry and routes undecodable, dropped or exhausted messages to the
dead-letter topic. Providers commit the offset only when `dispatch` returns True.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import structlog

from core.logging_config import get_logger

from .base import ConsumeMiddleware, Consumer, Envelope, HandleResult, Headers, Serializer
from .envelope import H_CORR_ID, ensure_original_topic, get_header, set_attempts, set_error
from .exceptions import NonRetryableError, RetryableError, SerializationError
from .middlewares.retry import RetryPolicy


DeadLetterSink = Callable[[str, Optional[bytes], Optional[bytes], Headers], Awaitable[None]]


class MessageDispatcher:
    def __init__(
        self,
        serializer: Serializer,
        retry_policy: RetryPolicy,
        dead_letter: DeadLetterSink,
        middlewares: Optional[List[ConsumeMiddleware]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.serializer = serializer
        self.retry_policy = retry_policy
        self.dead_letter = dead_letter
        self.middlewares = middlewares or []
        self._sleep = sleep
        self.log = get_logger("messaging.dispatch")

    async def _invoke(
        self, handler: Consumer.Handler, env: Envelope
    ) -> Tuple[HandleResult, Optional[BaseException]]:
        try:
            return await handler(env), None
        except RetryableError as e:
            return HandleResult.RETRY, e
        except NonRetryableError as e:
            return HandleResult.DROP, e
        except Exception as e:  # noqa: BLE001
            return HandleResult.RETRY, e

    async def _to_dead_letter(
        self,
        topic: str,
        key: Optional[bytes],
        value: Optional[bytes],
        headers: Headers,
    ) -> bool:
        dlq = self.retry_policy.dlq_topic(topic)
        ensure_original_topic(headers, topic)
        try:
            await self.dead_letter(dlq, key, value, headers)
        except Exception as e:  # noqa: BLE001
            # 死信写入失败：不提交位点，消息会被重新投递
            self.log.error("dead_letter_publish_failed", topic=topic, dlq=dlq, error=str(e))
            return False
        self.log.warning("message_dead_lettered", topic=topic, dlq=dlq)
        return True

    async def dispatch(
        self,
        topic: str,
        partition: int,
        offset: int,
        key: Optional[bytes],
        value: Optional[bytes],
        headers: Headers,
        handler: Consumer.Handler,
    ) -> bool:
        """处理一条消息，返回是否可以提交位点"""
        try:
            payload = self.serializer.loads(value) if value is not None else None
        except SerializationError as e:
            self.log.warning("message_undecodable", topic=topic, partition=partition, offset=offset)
            set_error(headers, "SerializationError", str(e))
            return await self._to_dead_letter(topic, key, value, headers)

        context = {"topic": topic, "offset": offset}
        corr_id = get_header(headers, H_CORR_ID)
        if corr_id:
            context["corr_id"] = corr_id
        if isinstance(payload, dict) and payload.get("event_id"):
            context["event_id"] = payload["event_id"]
        with structlog.contextvars.bound_contextvars(**context):
            return await self._handle(topic, partition, offset, key, value, payload, headers, handler)

    async def _handle(
        self,
        topic: str,
        partition: int,
        offset: int,
        key: Optional[bytes],
        value: Optional[bytes],
        payload: Any,
        headers: Headers,
        handler: Consumer.Handler,
    ) -> bool:
        env = Envelope(payload=payload, key=key, headers=headers)
        for m in self.middlewares:
            env = m.before_handle(topic, partition, offset, env)

        attempt = 0
        while True:
            attempt += 1
            result, err = await self._invoke(handler, env)
            if result != HandleResult.RETRY:
                break
            decision = self.retry_policy.decide(topic, attempt)
            if not decision.retry:
                break
            self.log.warning(
                "message_retry_scheduled",
                topic=topic,
                offset=offset,
                attempt=attempt,
                delay_ms=decision.delay_ms,
                error=str(err) if err else None,
            )
            await self._sleep(decision.delay_ms / 1000.0)

        for m in self.middlewares:
            m.after_handle(topic, partition, offset, env, result, err)

        if result == HandleResult.ACK:
            return True

        set_attempts(env.headers, attempt)
        if err is not None:
            set_error(env.headers, type(err).__name__, str(err))
        return await self._to_dead_letter(topic, key, value, env.headers)
