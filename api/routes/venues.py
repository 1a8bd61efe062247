"""
场馆视角的预订路由：空闲时段与场馆预订列表
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_booking_service, get_current_actor
from application.dtos.auth import Actor
from application.services.booking_service import BookingApplicationService
from core.response import Response as ApiResponse, success_response


router = APIRouter(
    prefix="/venues",
    tags=["场馆预订"]
)


@router.get("/{venue_id}/availability", summary="空闲时段", response_model=ApiResponse)
async def get_availability(
    venue_id: int,
    day: Optional[date] = Query(default=None, alias="date", description="场馆本地日期 YYYY-MM-DD"),
    service: BookingApplicationService = Depends(get_booking_service),
):
    """返回当天营业窗口内未被有效预订占用的时段（已合并相邻占用）"""
    availability = await service.get_availability(venue_id, day)
    return success_response(data=availability.model_dump(mode="json"))


@router.get("/{venue_id}/bookings", summary="场馆预订列表", response_model=ApiResponse)
async def list_venue_bookings(
    venue_id: int,
    day: Optional[date] = Query(default=None, alias="date"),
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    """场馆所有者或管理员可见，包含已取消的预订"""
    items = await service.list_venue_bookings(actor, venue_id, day)
    return success_response(data=[i.model_dump(mode="json") for i in items])
