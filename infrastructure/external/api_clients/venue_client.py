"""
场馆服务客户端

实现 VenueScheduleProvider：读取场馆的所有者、启用状态与每周营业时间。
超时、网络错误、5xx 以及无法解析的响应一律视为场馆服务不可用。
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from core.logging_config import get_logger
from domain.booking.schedule import VenueSchedule, WeeklySchedule
from domain.common.exceptions import (
    BusinessException,
    UpstreamUnavailableException,
    VenueNotFoundException,
)

from .base import APIError, BaseAPIClient, NotFoundError


logger = get_logger(__name__)


class VenueServiceClient(BaseAPIClient):
    def __init__(
        self,
        base_url: str,
        timeout: float = 3.0,
        max_retries: int = 1,
        **kwargs,
    ):
        super().__init__(base_url=base_url, timeout=timeout, max_retries=max_retries, **kwargs)

    @staticmethod
    def _parse(venue_id: int, data: Any) -> VenueSchedule:
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        if not isinstance(data, dict):
            raise UpstreamUnavailableException("venue", "malformed venue payload")

        owner_id: Optional[int] = data.get("owner_id")
        try:
            weekly = WeeklySchedule.from_dict(data.get("weekdays"))
        except BusinessException as exc:
            raise UpstreamUnavailableException("venue", f"malformed schedule: {exc.message}") from exc

        return VenueSchedule(
            venue_id=venue_id,
            weekly=weekly,
            owner_id=int(owner_id) if owner_id is not None else None,
            is_active=bool(data.get("is_active", True)),
        )

    async def get_schedule(self, venue_id: int) -> VenueSchedule:
        try:
            resp = await self.get(f"/venues/{venue_id}")
        except NotFoundError as exc:
            raise VenueNotFoundException(venue_id) from exc
        except APIError as exc:
            logger.warning("venue_fetch_failed", venue_id=venue_id, error=str(exc))
            raise UpstreamUnavailableException("venue", str(exc)) from exc

        try:
            payload: Dict[str, Any] = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailableException("venue", "response is not JSON") from exc
        return self._parse(venue_id, payload)
