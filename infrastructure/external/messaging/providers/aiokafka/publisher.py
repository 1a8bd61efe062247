from __future__ import annotations

import asyncio
from typing import List, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from ...base import Envelope, PublishMiddleware, PublishResult, Publisher, Serializer
from ...config import KafkaConfig
from ...exceptions import PublishError
from ._security import connection_kwargs


def _to_headers(headers: dict[str, bytes]) -> List[tuple[str, bytes]]:
    return [(k, v) for k, v in headers.items()]


class AiokafkaPublisher(Publisher):
    """acks=all + 幂等生产者；首次 publish 时惰性启动"""

    def __init__(
        self,
        cfg: KafkaConfig,
        serializer: Serializer,
        middlewares: Optional[List[PublishMiddleware]] = None,
    ) -> None:
        self.cfg = cfg
        self.serializer = serializer
        self.middlewares = middlewares or []
        self._producer: Optional[AIOKafkaProducer] = None
        self._lock = asyncio.Lock()

    def _create_producer(self) -> AIOKafkaProducer:
        kwargs = connection_kwargs(self.cfg)
        if self.cfg.producer.compression_type:
            kwargs["compression_type"] = self.cfg.producer.compression_type
        return AIOKafkaProducer(
            client_id=self.cfg.client_id,
            acks=self.cfg.producer.acks,
            enable_idempotence=self.cfg.producer.enable_idempotence,
            linger_ms=self.cfg.producer.linger_ms,
            request_timeout_ms=self.cfg.producer.request_timeout_ms,
            **kwargs,
        )

    async def start(self) -> None:
        async with self._lock:
            if self._producer is not None:
                return
            producer = self._create_producer()
            try:
                await asyncio.wait_for(producer.start(), timeout=self.cfg.producer.send_wait_s)
            except (KafkaError, asyncio.TimeoutError, OSError) as e:
                await producer.stop()
                raise PublishError(f"kafka producer start failed: {e}") from e
            self._producer = producer

    async def publish(self, topic: str, env: Envelope) -> PublishResult:
        if self._producer is None:
            await self.start()
        for m in self.middlewares:
            env = m.before_publish(topic, env)
        value_bytes = env.payload if isinstance(env.payload, (bytes, bytearray)) else self.serializer.dumps(env.payload)

        try:
            md = await asyncio.wait_for(
                self._producer.send_and_wait(
                    topic, value=value_bytes, key=env.key, headers=_to_headers(env.headers)
                ),
                timeout=self.cfg.producer.send_wait_s,
            )
        except (KafkaError, asyncio.TimeoutError) as e:
            raise PublishError(f"publish to {topic} failed: {e!r}") from e

        result = PublishResult(topic=topic, partition=md.partition, offset=md.offset, timestamp=md.timestamp)
        for m in self.middlewares:
            m.after_publish(topic, env, result)
        return result

    async def close(self) -> None:
        async with self._lock:
            if self._producer is not None:
                await self._producer.stop()
                self._producer = None
