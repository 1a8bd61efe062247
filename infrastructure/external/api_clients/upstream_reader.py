"""
通用只读上游客户端（网关聚合使用）

4xx/5xx 原样返回给调用方判断；只有拿不到响应（超时、网络错误）才抛 UpstreamCallError。
"""
from __future__ import annotations

from typing import Optional

from application.ports.upstream import UpstreamCallError, UpstreamReader, UpstreamResponse

from .base import APIError, BaseAPIClient


class HTTPUpstreamReader(BaseAPIClient, UpstreamReader):
    def __init__(self, base_url: str, timeout: float = 8.0, **kwargs):
        kwargs.setdefault("max_retries", 0)
        super().__init__(base_url=base_url, timeout=timeout, **kwargs)

    async def fetch(self, path: str, *, authorization: Optional[str] = None) -> UpstreamResponse:
        headers = {"Authorization": authorization} if authorization else None
        try:
            resp = await self.get(path, headers=headers, raise_on_error=False)
        except APIError as exc:
            raise UpstreamCallError(str(exc)) from exc
        body = resp.data
        if body is None and resp.raw_content:
            body = resp.raw_content.decode("utf-8", errors="replace")
        return UpstreamResponse(status_code=resp.status_code, body=body)
