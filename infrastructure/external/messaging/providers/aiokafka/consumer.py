from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition

from core.logging_config import get_logger

from ...base import ConsumeMiddleware, Consumer, Serializer
from ...config import KafkaConfig, RetryConfig
from ...dispatch import MessageDispatcher
from ...middlewares.retry import RetryPolicy
from ._security import connection_kwargs


def _from_headers(raw) -> Dict[str, bytes]:
    headers: Dict[str, bytes] = {}
    if not raw:
        return headers
    for k, v in raw:
        headers[k] = v
    return headers


def _to_headers(headers: Dict[str, bytes]) -> List[tuple[str, bytes]]:
    return [(k, v) for k, v in headers.items()]


class AiokafkaConsumer(Consumer):
    """
    手动提交位点的顺序消费者

    每条消息处理完成（ACK 或成功写入死信）后才提交；死信写入失败时回退到该位点，
    稍后重新投递。
    """

    POLL_TIMEOUT_MS = 500

    def __init__(
        self,
        cfg: KafkaConfig,
        retry: RetryConfig,
        serializer: Serializer,
        middlewares: Optional[List[ConsumeMiddleware]] = None,
    ) -> None:
        self.cfg = cfg
        self.retry_cfg = retry
        self.serializer = serializer
        self.middlewares = middlewares or []
        self.log = get_logger("messaging.aiokafka.consumer")
        self._group_id: Optional[str] = None
        self._topics: Optional[List[str]] = None
        self._stopped = asyncio.Event()
        self._retry_policy = RetryPolicy(retry)
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._producer: Optional[AIOKafkaProducer] = None

    def subscribe(self, topics: List[str], group_id: str) -> None:
        self._topics = topics
        self._group_id = group_id

    async def _send_dead_letter(self, topic, key, value, headers) -> None:
        await asyncio.wait_for(
            self._producer.send_and_wait(topic, value=value, key=key, headers=_to_headers(headers)),
            timeout=self.cfg.producer.send_wait_s,
        )

    async def run(self, handler: Consumer.Handler) -> None:
        if not self._topics or not self._group_id:
            raise RuntimeError("Call subscribe(topics, group_id) before run().")

        conn = connection_kwargs(self.cfg)
        self._consumer = AIOKafkaConsumer(
            *self._topics,
            group_id=self._group_id,
            client_id=self.cfg.client_id,
            enable_auto_commit=False,
            auto_offset_reset=self.cfg.consumer.auto_offset_reset,
            max_poll_interval_ms=self.cfg.consumer.max_poll_interval_ms,
            session_timeout_ms=self.cfg.consumer.session_timeout_ms,
            **conn,
        )
        self._producer = AIOKafkaProducer(
            client_id=self.cfg.client_id + ".dlq",
            acks="all",
            enable_idempotence=True,
            **conn,
        )
        dispatcher = MessageDispatcher(
            self.serializer,
            self._retry_policy,
            self._send_dead_letter,
            self.middlewares,
        )

        try:
            await self._consumer.start()
            await self._producer.start()
            self.log.info("consumer_started", topics=self._topics, group_id=self._group_id)

            while not self._stopped.is_set():
                batches = await self._consumer.getmany(timeout_ms=self.POLL_TIMEOUT_MS)
                for tp, records in batches.items():
                    for msg in records:
                        commit = await dispatcher.dispatch(
                            msg.topic,
                            msg.partition,
                            msg.offset,
                            msg.key,
                            msg.value,
                            _from_headers(msg.headers),
                            handler,
                        )
                        if commit:
                            await self._consumer.commit({TopicPartition(msg.topic, msg.partition): msg.offset + 1})
                            continue
                        # 回退到未处理的位点，本批次剩余消息随之重新拉取
                        self._consumer.seek(tp, msg.offset)
                        await asyncio.sleep(self.retry_cfg.max_backoff_ms / 1000.0)
                        break
        finally:
            await self._consumer.stop()
            await self._producer.stop()
            self.log.info("consumer_stopped", topics=self._topics, group_id=self._group_id)

    async def stop(self) -> None:
        self._stopped.set()
