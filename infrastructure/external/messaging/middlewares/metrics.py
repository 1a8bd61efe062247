from __future__ import annotations

import time
from typing import Optional
import contextvars

from prometheus_client import Counter, Histogram

from ..base import ConsumeMiddleware, Envelope, HandleResult, PublishMiddleware, PublishResult


# 指标在模块级注册一次，多个中间件实例共享
PUBLISH_TOTAL = Counter(
    "messaging_publish_total", "Publish attempts", ["topic", "result"]
)
PUBLISH_LATENCY = Histogram(
    "messaging_publish_latency_ms", "Publish latency ms", buckets=(1, 5, 10, 50, 100, 500, 1000)
)
CONSUME_TOTAL = Counter(
    "messaging_consume_total", "Consume results", ["topic", "result"]
)
HANDLE_LATENCY = Histogram(
    "messaging_handle_latency_ms", "Handle latency ms", buckets=(1, 5, 10, 50, 100, 500, 1000)
)


class MetricsMiddleware(PublishMiddleware, ConsumeMiddleware):
    def __init__(self) -> None:
        # Use context-local storage to avoid cross-task interference
        self._pub_start: contextvars.ContextVar[Optional[float]] = contextvars.ContextVar(
            "messaging_pub_start_ts", default=None
        )
        self._con_start: contextvars.ContextVar[Optional[float]] = contextvars.ContextVar(
            "messaging_con_start_ts", default=None
        )

    def before_publish(self, topic: str, env: Envelope) -> Envelope:  # type: ignore[override]
        self._pub_start.set(time.perf_counter())
        return env

    def after_publish(self, topic: str, env: Envelope, result: PublishResult) -> None:  # type: ignore[override]
        PUBLISH_TOTAL.labels(topic=topic, result="ok").inc()
        ts = self._pub_start.get()
        if ts is not None:
            PUBLISH_LATENCY.observe((time.perf_counter() - ts) * 1000)
            self._pub_start.set(None)

    def before_handle(self, topic: str, partition: int, offset: int, env: Envelope) -> Envelope:  # type: ignore[override]
        self._con_start.set(time.perf_counter())
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
        label = "error" if exc else result.value.lower()
        CONSUME_TOTAL.labels(topic=topic, result=label).inc()
        ts = self._con_start.get()
        if ts is not None:
            HANDLE_LATENCY.observe((time.perf_counter() - ts) * 1000)
            self._con_start.set(None)
