"""In-process append-only log with per-group committed offsets.

Single-process only. Useful for local dev and tests: it keeps Kafka's
ordering and commit semantics (one partition per topic) without a cluster.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ...base import Headers


@dataclass(slots=True)
class Record:
    topic: str
    offset: int
    key: Optional[bytes]
    value: Optional[bytes]
    headers: Headers = field(default_factory=dict)
    partition: int = 0


class InMemoryBroker:
    def __init__(self) -> None:
        self._logs: Dict[str, List[Record]] = {}
        self._committed: Dict[Tuple[str, str], int] = {}
        self._cond = asyncio.Condition()

    async def append(
        self,
        topic: str,
        key: Optional[bytes],
        value: Optional[bytes],
        headers: Optional[Headers] = None,
    ) -> Record:
        async with self._cond:
            log = self._logs.setdefault(topic, [])
            record = Record(topic=topic, offset=len(log), key=key, value=value, headers=dict(headers or {}))
            log.append(record)
            self._cond.notify_all()
        return record

    def records(self, topic: str) -> List[Record]:
        return list(self._logs.get(topic, []))

    def read(self, topic: str, position: int) -> Optional[Record]:
        log = self._logs.get(topic, [])
        return log[position] if position < len(log) else None

    def committed(self, group_id: str, topic: str) -> int:
        return self._committed.get((group_id, topic), 0)

    def commit(self, group_id: str, topic: str, offset: int) -> None:
        self._committed[(group_id, topic)] = offset

    async def wait_for_records(self, timeout: float) -> None:
        async with self._cond:
            try:
                await asyncio.wait_for(self._cond.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
