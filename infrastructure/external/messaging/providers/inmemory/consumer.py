from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from ...base import ConsumeMiddleware, Consumer, Serializer
from ...config import RetryConfig
from ...dispatch import MessageDispatcher
from ...middlewares.retry import RetryPolicy
from .broker import InMemoryBroker


class InMemoryConsumer(Consumer):
    """从已提交位点继续消费；位点只在处理完成后前移"""

    IDLE_WAIT_S = 0.1

    def __init__(
        self,
        broker: InMemoryBroker,
        retry: RetryConfig,
        serializer: Serializer,
        middlewares: Optional[List[ConsumeMiddleware]] = None,
        sleep=asyncio.sleep,
    ) -> None:
        self.broker = broker
        self.retry_cfg = retry
        self.serializer = serializer
        self.middlewares = middlewares or []
        self._sleep = sleep
        self._topics: List[str] = []
        self._group_id: Optional[str] = None
        self._stopped = asyncio.Event()

    def subscribe(self, topics: List[str], group_id: str) -> None:
        self._topics = topics
        self._group_id = group_id

    async def _send_dead_letter(self, topic, key, value, headers) -> None:
        await self.broker.append(topic, key, value, headers)

    async def run(self, handler: Consumer.Handler) -> None:
        if not self._topics or not self._group_id:
            raise RuntimeError("Call subscribe(topics, group_id) before run().")

        dispatcher = MessageDispatcher(
            self.serializer,
            RetryPolicy(self.retry_cfg),
            self._send_dead_letter,
            self.middlewares,
            sleep=self._sleep,
        )
        positions: Dict[str, int] = {
            topic: self.broker.committed(self._group_id, topic) for topic in self._topics
        }

        while not self._stopped.is_set():
            progressed = False
            for topic in self._topics:
                record = self.broker.read(topic, positions[topic])
                if record is None:
                    continue
                progressed = True
                commit = await dispatcher.dispatch(
                    record.topic,
                    record.partition,
                    record.offset,
                    record.key,
                    record.value,
                    dict(record.headers),
                    handler,
                )
                if commit:
                    positions[topic] = record.offset + 1
                    self.broker.commit(self._group_id, topic, positions[topic])
                else:
                    await self._sleep(self.retry_cfg.max_backoff_ms / 1000.0)
            if not progressed:
                await self.broker.wait_for_records(self.IDLE_WAIT_S)

    async def stop(self) -> None:
        self._stopped.set()
