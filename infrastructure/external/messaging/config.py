from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional


@dataclass(slots=True)
class TLSConfig:
    enable: bool = False
    ca_location: Optional[str] = None
    certificate: Optional[str] = None
    key: Optional[str] = None
    verify: bool = True


@dataclass(slots=True)
class SASLConfig:
    mechanism: Optional[str] = None  # e.g. "PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512"
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass(slots=True)
class ProducerTuning:
    acks: str = "all"
    enable_idempotence: bool = True
    compression_type: Optional[str] = None
    linger_ms: int = 5
    request_timeout_ms: int = 30_000
    # publish 调用的最长等待（秒），超时即视为发布失败
    send_wait_s: float = 10.0


@dataclass(slots=True)
class ConsumerTuning:
    auto_offset_reset: str = "earliest"
    max_poll_interval_ms: int = 300_000
    session_timeout_ms: int = 45_000


@dataclass(slots=True)
class RetryConfig:
    # 原地重试次数（含首次处理），耗尽后写入 <topic>.<dlq_suffix>
    max_attempts: int = 3
    initial_backoff_ms: int = 200
    max_backoff_ms: int = 5_000
    dlq_suffix: str = "dlq"


@dataclass(slots=True)
class KafkaConfig:
    bootstrap_servers: str = "localhost:9092"
    client_id: str = "venue-booking"
    tls: TLSConfig = field(default_factory=TLSConfig)
    sasl: SASLConfig = field(default_factory=SASLConfig)
    producer: ProducerTuning = field(default_factory=ProducerTuning)
    consumer: ConsumerTuning = field(default_factory=ConsumerTuning)
    driver: Literal["aiokafka", "inmemory"] = "aiokafka"


@dataclass(slots=True)
class MessagingConfig:
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
