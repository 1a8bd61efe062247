from __future__ import annotations

"""Messaging config builder (composition root for messaging layer).

Maps the application's Kafka settings and the settlement retry settings to the
MessagingConfig dataclasses used by the messaging infrastructure, so that core
configuration never imports provider code.
"""

from typing import Optional, Protocol

from .config import (
    MessagingConfig,
    KafkaConfig,
    TLSConfig,
    SASLConfig,
    ProducerTuning,
    ConsumerTuning,
    RetryConfig,
)


class KafkaSettingsLike(Protocol):
    driver: str  # "aiokafka" | "inmemory"

    # Core Kafka
    bootstrap_servers: str
    client_id: str

    # TLS
    tls_enable: bool
    tls_ca_location: str | None
    tls_certificate: str | None
    tls_key: str | None
    tls_verify: bool

    # SASL
    sasl_mechanism: str | None
    sasl_username: str | None
    sasl_password: str | None

    # Producer tuning
    producer_acks: str
    producer_enable_idempotence: bool
    producer_compression_type: str | None
    producer_linger_ms: int
    producer_request_timeout_ms: int
    producer_send_wait_s: float

    # Consumer tuning
    consumer_auto_offset_reset: str
    consumer_max_poll_interval_ms: int
    consumer_session_timeout_ms: int


class RetrySettingsLike(Protocol):
    max_attempts: int
    backoff_initial_ms: int
    backoff_max_ms: int
    dlq_suffix: str


def messaging_config_from_settings(
    ks: KafkaSettingsLike,
    rs: Optional[RetrySettingsLike] = None,
) -> MessagingConfig:
    """Build MessagingConfig from KafkaSettings-like and retry-settings-like objects.

    Plain field mapping; `rs` is only needed by consumers.
    """

    tls = TLSConfig(
        enable=ks.tls_enable,
        ca_location=ks.tls_ca_location,
        certificate=ks.tls_certificate,
        key=ks.tls_key,
        verify=ks.tls_verify,
    )
    sasl = SASLConfig(
        mechanism=ks.sasl_mechanism,
        username=ks.sasl_username,
        password=ks.sasl_password,
    )
    producer = ProducerTuning(
        acks=ks.producer_acks,
        enable_idempotence=ks.producer_enable_idempotence,
        compression_type=ks.producer_compression_type,
        linger_ms=ks.producer_linger_ms,
        request_timeout_ms=ks.producer_request_timeout_ms,
        send_wait_s=ks.producer_send_wait_s,
    )
    consumer = ConsumerTuning(
        auto_offset_reset=ks.consumer_auto_offset_reset,
        max_poll_interval_ms=ks.consumer_max_poll_interval_ms,
        session_timeout_ms=ks.consumer_session_timeout_ms,
    )

    retry = RetryConfig()
    if rs is not None:
        retry = RetryConfig(
            max_attempts=max(1, rs.max_attempts),
            initial_backoff_ms=rs.backoff_initial_ms,
            max_backoff_ms=rs.backoff_max_ms,
            dlq_suffix=rs.dlq_suffix,
        )

    kafka = KafkaConfig(
        bootstrap_servers=ks.bootstrap_servers,
        client_id=ks.client_id,
        tls=tls,
        sasl=sasl,
        producer=producer,
        consumer=consumer,
        driver="inmemory" if ks.driver == "inmemory" else "aiokafka",
    )
    return MessagingConfig(kafka=kafka, retry=retry)


__all__ = ["messaging_config_from_settings", "KafkaSettingsLike", "RetrySettingsLike"]
