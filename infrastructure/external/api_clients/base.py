"""
兄弟服务 HTTP 客户端基类

- 有界超时；网络错误、超时与 429/5xx 由 tenacity 指数退避重试
- 错误状态码映射为 APIError 家族
- raise_on_error=False 时 4xx/5xx 原样返回，由调用方自行判断
"""
import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger


logger = get_logger(__name__)

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


@dataclass
class APIResponse:
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)


class APIError(Exception):
    """兄弟服务调用失败"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    @property
    def request_id(self) -> Optional[str]:
        return self.response.request_id if self.response else None

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class NotFoundError(APIError):
    pass


class ServerError(APIError):
    pass


class _TransientStatus(APIError):
    """可重试的状态码，重试耗尽后转换为 ServerError"""


def _error_message(response: APIResponse) -> str:
    if isinstance(response.data, dict):
        for key in ("message", "error", "detail"):
            if response.data.get(key):
                return str(response.data[key])
    return f"API request failed with status {response.status_code}"


def _raise_for_status(response: APIResponse) -> None:
    if response.status_code == 404:
        error_class = NotFoundError
    elif response.status_code >= 500 or response.status_code == 429:
        error_class = ServerError
    else:
        error_class = APIError
    raise error_class(_error_message(response), status_code=response.status_code, response=response)


class BaseAPIClient:
    """
    兄弟服务客户端基类，子类实现具体的读取方法

    底层 httpx.AsyncClient 懒创建，close() 或 async with 退出时释放。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 0.2,
        headers: Optional[Dict[str, str]] = None,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: 服务基础URL
            timeout: 单次请求超时（秒）
            max_retries: 最大重试次数（不含首次）
            retry_delay: 首次重试等待（秒），之后指数增长
            headers: 默认请求头
            debug: 是否记录每次请求/响应
            transport: 自定义 httpx 传输层（测试中注入 MockTransport）
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.debug = debug
        self._transport = transport

        self.default_headers = {
            "Accept": "application/json",
            "User-Agent": "venue-booking/1.0",
        }
        if headers:
            self.default_headers.update(headers)

        self._client: Optional[httpx.AsyncClient] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _log_retry(self, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "upstream_request_retry",
            base_url=self.base_url,
            attempt=state.attempt_number,
            error=str(exc) if exc else None,
        )

    async def _send_once(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Dict[str, str],
        raise_on_error: bool,
    ) -> APIResponse:
        started = time.perf_counter()
        response = await self._http().request(method, url, params=params, headers=headers)
        elapsed_ms = (time.perf_counter() - started) * 1000

        data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except json.JSONDecodeError:
                data = None

        api_response = APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=data,
            raw_content=response.content,
            elapsed_ms=elapsed_ms,
            request_id=response.headers.get("x-request-id"),
        )
        if self.debug:
            logger.debug(
                "upstream_response",
                method=method,
                url=url,
                status_code=api_response.status_code,
                elapsed_ms=round(elapsed_ms, 2),
            )

        if not raise_on_error or not api_response.is_error:
            return api_response

        if api_response.status_code in RETRY_STATUS_CODES:
            retry_after = api_response.headers.get("retry-after")
            if api_response.status_code == 429 and retry_after:
                try:
                    await asyncio.sleep(min(float(retry_after), self.timeout))
                except ValueError:
                    pass
            raise _TransientStatus(
                f"Transient API error with status {api_response.status_code}",
                status_code=api_response.status_code,
                response=api_response,
            )
        _raise_for_status(api_response)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        raise_on_error: bool = True,
    ) -> APIResponse:
        """
        发送请求（带重试）

        Raises:
            APIError: 超时/网络错误，或 raise_on_error=True 时的错误状态码
        """
        url = self._build_url(endpoint)
        request_headers = {**self.default_headers, **(headers or {})}

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8,
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, _TransientStatus)),
            before_sleep=self._log_retry,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send_once(method, url, params, request_headers, raise_on_error)
        except httpx.TimeoutException as exc:
            raise APIError(f"Request timeout after {self.timeout}s") from exc
        except httpx.NetworkError as exc:
            raise APIError(f"Network error: {exc}") from exc
        except _TransientStatus as exc:
            _raise_for_status(exc.response)
        except httpx.HTTPError as exc:
            logger.error("upstream_request_failed", url=url, error=str(exc))
            raise APIError(f"Unexpected error: {exc}") from exc

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request("GET", endpoint, **kwargs)
