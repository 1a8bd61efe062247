from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol


Headers = Dict[str, bytes]


@dataclass(slots=True)
class Envelope:
    payload: Any
    key: Optional[bytes] = None
    headers: Headers = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = "v1"


@dataclass(slots=True)
class PublishResult:
    topic: str
    partition: int
    offset: int
    timestamp: Optional[int] = None


class HandleResult(enum.Enum):
    ACK = "ACK"
    RETRY = "RETRY"
    DROP = "DROP"


class Serializer(Protocol):
    def dumps(self, obj: Any) -> bytes: ...

    def loads(self, data: bytes) -> Any: ...


class PublishMiddleware(Protocol):
    def before_publish(self, topic: str, env: Envelope) -> Envelope: ...

    def after_publish(self, topic: str, env: Envelope, result: PublishResult) -> None: ...


class ConsumeMiddleware(Protocol):
    def before_handle(self, topic: str, partition: int, offset: int, env: Envelope) -> Envelope: ...

    def after_handle(
        self,
        topic: str,
        partition: int,
        offset: int,
        env: Envelope,
        result: HandleResult,
        exc: Optional[BaseException] = None,
    ) -> None: ...


class Publisher(abc.ABC):
    """异步发布者：首次 publish 前惰性启动，close 释放连接"""

    @abc.abstractmethod
    async def start(self) -> None: ...

    @abc.abstractmethod
    async def publish(self, topic: str, env: Envelope) -> PublishResult: ...

    @abc.abstractmethod
    async def close(self) -> None: ...


class Consumer(abc.ABC):
    """异步消费者：run 顺序处理消息直到 stop() 或任务被取消"""

    Handler = Callable[[Envelope], Awaitable[HandleResult]]

    @abc.abstractmethod
    def subscribe(self, topics: List[str], group_id: str) -> None: ...

    @abc.abstractmethod
    async def run(self, handler: Handler) -> None: ...

    @abc.abstractmethod
    async def stop(self) -> None: ...
