from __future__ import annotations

from typing import List, Optional

from .base import ConsumeMiddleware, Consumer, PublishMiddleware, Publisher, Serializer
from .config import MessagingConfig
from .providers.aiokafka.consumer import AiokafkaConsumer
from .providers.aiokafka.publisher import AiokafkaPublisher
from .providers.inmemory.broker import InMemoryBroker
from .providers.inmemory.consumer import InMemoryConsumer
from .providers.inmemory.publisher import InMemoryPublisher


def create_publisher(
    cfg: MessagingConfig,
    serializer: Serializer,
    middlewares: Optional[List[PublishMiddleware]] = None,
    broker: Optional[InMemoryBroker] = None,
) -> Publisher:
    if cfg.kafka.driver == "aiokafka":
        return AiokafkaPublisher(cfg.kafka, serializer, middlewares)
    if cfg.kafka.driver == "inmemory":
        if broker is None:
            raise ValueError("inmemory driver requires a shared InMemoryBroker")
        return InMemoryPublisher(broker, serializer, middlewares)
    raise ValueError(f"Unsupported driver: {cfg.kafka.driver}")


def create_consumer(
    cfg: MessagingConfig,
    serializer: Serializer,
    middlewares: Optional[List[ConsumeMiddleware]] = None,
    broker: Optional[InMemoryBroker] = None,
) -> Consumer:
    if cfg.kafka.driver == "aiokafka":
        return AiokafkaConsumer(cfg.kafka, cfg.retry, serializer, middlewares)
    if cfg.kafka.driver == "inmemory":
        if broker is None:
            raise ValueError("inmemory driver requires a shared InMemoryBroker")
        return InMemoryConsumer(broker, cfg.retry, serializer, middlewares)
    raise ValueError(f"Unsupported driver: {cfg.kafka.driver}")
