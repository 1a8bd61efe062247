"""
请求/响应日志中间件

每个请求一条完成日志（状态码、耗时）；4xx 记 warning，5xx 与未处理异常记 error。
request_id 等上下文由 RequestIDMiddleware 绑定，这里不重复记录。
"""
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    # 探活与文档请求不记日志
    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=self._elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        duration_ms = self._elapsed_ms(started)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"

        fields = {
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "query": str(request.url.query) or None,
        }
        if response.status_code < 400:
            logger.info("request_completed", **fields)
        elif response.status_code < 500:
            logger.warning("request_client_error", **fields)
        else:
            logger.error("request_server_error", **fields)
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)
