"""
预订API路由 - FastAPI表现层
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from typing import Optional

from api.dependencies import (
    get_authorization,
    get_booking_service,
    get_current_actor,
    get_payment_service,
    get_summary_service,
)
from application.dtos.auth import Actor
from application.dtos.bookings import (
    CancelBookingDTO,
    CreateBookingDTO,
    UpdateBookingDTO,
)
from application.services.booking_service import BookingApplicationService
from application.services.booking_summary_service import BookingSummaryService, UpstreamStatus
from application.services.payment_service import PaymentApplicationService
from core.config import get_settings
from core.response import Response as ApiResponse, paginated_response, success_response


router = APIRouter(
    prefix="/bookings",
    tags=["预订管理"]
)


@router.post("", summary="创建预订", status_code=201, response_model=ApiResponse)
async def create_booking(
    body: CreateBookingDTO,
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    """
    创建预订

    - **venue_id**: 场馆ID
    - **owner_id**: 场馆所有者ID（必须与场馆服务一致）
    - **start_at / end_at**: 半开区间 [start_at, end_at)，须落在当天营业时间内
    - **price**: 价格（大于0）

    事件发布失败时预订仍然保存，响应中 event_published=false 并附带 warning
    """
    result = await service.create_booking(actor, body)
    return success_response(
        data=result.model_dump(mode="json"),
        message="Reservation created",
        warning=result.warning,
    )


# 兼容旧客户端的单数路径 POST /booking
singular_router = APIRouter(tags=["预订管理"])
singular_router.add_api_route(
    "/booking",
    create_booking,
    methods=["POST"],
    status_code=201,
    response_model=ApiResponse,
    summary="创建预订（单数路径）",
)


@router.get("", summary="我的预订", response_model=ApiResponse)
async def list_my_bookings(
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    settings = get_settings()
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    items, total = await service.list_client_bookings(actor, limit=limit, offset=offset)
    return paginated_response(
        items=[i.model_dump(mode="json") for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{booking_id}", summary="获取预订", response_model=ApiResponse)
async def get_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    booking = await service.get_booking(booking_id)
    return success_response(data=booking.model_dump(mode="json"))


@router.put("/{booking_id}", summary="修改预订", response_model=ApiResponse)
async def update_booking(
    booking_id: int,
    body: UpdateBookingDTO,
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    """仅 pending 状态可修改；新区间同样需要通过营业时间与冲突校验（排除自身）"""
    result = await service.update_booking(actor, booking_id, body)
    return success_response(data=result.model_dump(mode="json"), message="Reservation updated")


@router.post("/{booking_id}/cancel", summary="取消预订", response_model=ApiResponse)
async def cancel_booking(
    booking_id: int,
    body: CancelBookingDTO,
    actor: Actor = Depends(get_current_actor),
    service: BookingApplicationService = Depends(get_booking_service),
):
    result = await service.cancel_booking(actor, booking_id, body)
    return success_response(
        data=result.model_dump(mode="json"),
        message="Reservation cancelled",
        warning=result.warning,
    )


@router.get("/{booking_id}/payment", summary="预订的支付", response_model=ApiResponse)
async def get_booking_payment(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.get_payment_by_booking(actor, booking_id)
    return success_response(data=payment.model_dump(mode="json"))


@router.get("/{booking_id}/summary", summary="预订摘要", response_model=ApiResponse)
async def get_booking_summary(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    authorization: Optional[str] = Depends(get_authorization),
    service: BookingSummaryService = Depends(get_summary_service),
):
    """
    聚合预订、场馆与支付信息

    预订读取失败返回 502，预订服务的非 200 响应原样透传；
    场馆或支付读取失败时仍返回 200，并在 venue_error / payment_error 中说明
    """
    result = await service.get_summary(booking_id, authorization=authorization)
    if isinstance(result, UpstreamStatus):
        return JSONResponse(status_code=result.status_code, content=result.body)
    return success_response(data=result.model_dump(mode="json"))
