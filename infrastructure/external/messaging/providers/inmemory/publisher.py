from __future__ import annotations

from typing import List, Optional

from ...base import Envelope, PublishMiddleware, PublishResult, Publisher, Serializer
from .broker import InMemoryBroker


class InMemoryPublisher(Publisher):
    def __init__(
        self,
        broker: InMemoryBroker,
        serializer: Serializer,
        middlewares: Optional[List[PublishMiddleware]] = None,
    ) -> None:
        self.broker = broker
        self.serializer = serializer
        self.middlewares = middlewares or []

    async def start(self) -> None:
        return None

    async def publish(self, topic: str, env: Envelope) -> PublishResult:
        for m in self.middlewares:
            env = m.before_publish(topic, env)
        value_bytes = env.payload if isinstance(env.payload, (bytes, bytearray)) else self.serializer.dumps(env.payload)
        record = await self.broker.append(topic, env.key, value_bytes, env.headers)
        result = PublishResult(topic=topic, partition=record.partition, offset=record.offset)
        for m in self.middlewares:
            m.after_publish(topic, env, result)
        return result

    async def close(self) -> None:
        return None
