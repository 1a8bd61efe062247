from .base import (
    Envelope,
    PublishResult,
    HandleResult,
    Publisher,
    Consumer,
    Serializer,
)
from .config import (
    MessagingConfig,
    KafkaConfig,
    ProducerTuning,
    ConsumerTuning,
    TLSConfig,
    SASLConfig,
    RetryConfig,
)
from .exceptions import PublishError
from .factory import create_publisher, create_consumer
from .providers.inmemory.broker import InMemoryBroker

__all__ = [
    "Envelope",
    "PublishResult",
    "HandleResult",
    "Publisher",
    "Consumer",
    "Serializer",
    "MessagingConfig",
    "KafkaConfig",
    "ProducerTuning",
    "ConsumerTuning",
    "TLSConfig",
    "SASLConfig",
    "RetryConfig",
    "PublishError",
    "InMemoryBroker",
    "create_publisher",
    "create_consumer",
]
