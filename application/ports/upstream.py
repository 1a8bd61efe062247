"""
Read-only access to a sibling service's HTTP API (application/ports).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass
class UpstreamResponse:
    status_code: int
    body: Any


class UpstreamCallError(Exception):
    """网络错误或超时：没有拿到任何响应"""


@runtime_checkable
class UpstreamReader(Protocol):
    async def fetch(self, path: str, *, authorization: Optional[str] = None) -> UpstreamResponse: ...
