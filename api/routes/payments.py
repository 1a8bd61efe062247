"""
Payments API routes.

Thin layer over PaymentApplicationService: direct payments, confirmation,
refunds and reads. Settlement of booking events happens in the listeners.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from api.dependencies import get_current_actor, get_payment_service
from application.dtos.auth import Actor
from application.dtos.payments import CreatePaymentDTO, RefundRequestDTO
from application.services.payment_service import PaymentApplicationService
from core.config import get_settings
from core.response import Response as ApiResponse, paginated_response, success_response


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("", status_code=201, response_model=ApiResponse)
async def create_payment(
    body: CreatePaymentDTO,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.create_payment(actor, body)
    return success_response(data=payment.model_dump(mode="json"), message="Payment created")


@router.get("", response_model=ApiResponse)
async def list_payments(
    user_id: Optional[int] = Query(default=None, ge=1),
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    settings = get_settings()
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    items, total = await service.list_payments(actor, user_id or x_user_id, limit=limit, offset=offset)
    return paginated_response(
        items=[i.model_dump(mode="json") for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{payment_id}", response_model=ApiResponse)
async def get_payment(
    payment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.get_payment(actor, payment_id)
    return success_response(data=payment.model_dump(mode="json"))


@router.post("/{payment_id}/confirm", response_model=ApiResponse)
async def confirm_payment(
    payment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.confirm_payment(actor, payment_id)
    return success_response(data=payment.model_dump(mode="json"), message="Payment confirmed")


@router.post("/{payment_id}/refund", response_model=ApiResponse)
async def refund_payment(
    payment_id: int,
    body: RefundRequestDTO,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    result = await service.refund_payment(actor, payment_id, body)
    return success_response(data=result.model_dump(mode="json"), message="Refund created")


@router.get("/{payment_id}/refunds", response_model=ApiResponse)
async def list_refunds(
    payment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    refunds = await service.list_refunds(actor, payment_id)
    return success_response(data=[r.model_dump(mode="json") for r in refunds])
