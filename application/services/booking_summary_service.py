"""
预订摘要聚合：预订 + 场馆 + 支付

主资源（预订）拿不到响应即 502，非 200 则原样透传其状态码；
场馆、支付任一失败不影响整体，只在对应的 *_error 字段中说明。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from application.dtos.summary import BookingSummaryDTO
from application.ports.upstream import UpstreamCallError, UpstreamReader
from core.logging_config import get_logger
from domain.common.exceptions import BadGatewayException


logger = get_logger(__name__)


def unwrap(body: Any) -> Any:
    """兄弟服务使用统一响应信封 {code, message, data}；取出 data"""
    if isinstance(body, dict) and "data" in body and "code" in body:
        return body["data"]
    return body


@dataclass
class UpstreamStatus:
    """预订读取得到非 200 响应时，由路由原样返回"""

    status_code: int
    body: Any


class BookingSummaryService:
    def __init__(
        self,
        reservations: UpstreamReader,
        venues: UpstreamReader,
        payments: UpstreamReader,
    ) -> None:
        self._reservations = reservations
        self._venues = venues
        self._payments = payments

    async def _fetch_optional(
        self,
        name: str,
        reader: UpstreamReader,
        path: str,
        authorization: Optional[str],
    ) -> Tuple[Optional[Any], Optional[str]]:
        try:
            resp = await reader.fetch(path, authorization=authorization)
        except UpstreamCallError as exc:
            logger.warning("summary_fetch_failed", service=name, path=path, error=str(exc))
            return None, f"{name} service unavailable"
        if resp.status_code != 200:
            logger.info("summary_fetch_status", service=name, path=path, status_code=resp.status_code)
            return None, f"{name} service status {resp.status_code}"
        return unwrap(resp.body), None

    async def get_summary(
        self,
        booking_id: int,
        authorization: Optional[str] = None,
    ) -> BookingSummaryDTO | UpstreamStatus:
        try:
            booking_resp = await self._reservations.fetch(
                f"/bookings/{booking_id}", authorization=authorization
            )
        except UpstreamCallError as exc:
            logger.error("summary_booking_fetch_failed", booking_id=booking_id, error=str(exc))
            raise BadGatewayException("reservation", str(exc)) from exc

        if booking_resp.status_code != 200:
            return UpstreamStatus(status_code=booking_resp.status_code, body=booking_resp.body)

        booking = unwrap(booking_resp.body)
        venue_id = booking.get("venue_id") if isinstance(booking, dict) else None

        venue, venue_error = None, None
        if venue_id is not None:
            venue, venue_error = await self._fetch_optional(
                "venue", self._venues, f"/venues/{venue_id}", authorization
            )
        else:
            venue_error = "venue id missing in reservation"

        payment, payment_error = await self._fetch_optional(
            "payment", self._payments, f"/bookings/{booking_id}/payment", authorization
        )

        return BookingSummaryDTO(
            booking=booking,
            venue=venue,
            payment=payment,
            venue_error=venue_error,
            payment_error=payment_error,
        )
