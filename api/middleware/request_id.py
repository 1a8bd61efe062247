"""
Request ID 中间件

从 X-Request-ID（或兄弟服务传入的 X-Correlation-ID）取追踪ID，缺省时生成；
绑定到 structlog 上下文并回写响应头。发布预订事件时同一ID写入 x-corr-id 消息头，
结算日志据此与发起请求串联。
"""
import uuid
from typing import Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class RequestIDMiddleware(BaseHTTPMiddleware):
    HEADER_NAME = "X-Request-ID"
    FALLBACK_HEADERS = ("X-Correlation-ID",)

    async def dispatch(self, request: Request, call_next):
        request_id = self._incoming_id(request) or str(uuid.uuid4())
        client_ip = get_client_ip(request)

        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response

    def _incoming_id(self, request: Request) -> Optional[str]:
        for name in (self.HEADER_NAME, *self.FALLBACK_HEADERS):
            value = request.headers.get(name)
            if value:
                return value
        return None


def get_client_ip(request: Request) -> str:
    """客户端真实IP：X-Forwarded-For 首项 > X-Real-IP > 连接地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or (request.client.host if request.client else "unknown")
