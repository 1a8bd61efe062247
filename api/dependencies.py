"""
API依赖项 - 认证和应用服务注入

令牌由身份服务签发（HS256，载荷 user_id/role），这里只做校验与解析。
应用服务在 lifespan 中组装并挂在 app.state 上。
"""
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from application.dtos.auth import Actor, Role
from application.services.booking_service import BookingApplicationService
from application.services.booking_summary_service import BookingSummaryService
from application.services.payment_service import PaymentApplicationService
from core.config import get_settings
from domain.common.exceptions import (
    TokenExpiredException,
    TokenInvalidException,
    UnauthorizedException,
)

# HTTP Bearer for direct API calls
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication",
    auto_error=False,
)


def decode_actor(token: str, secret_key: str, algorithm: str) -> Actor:
    """解析令牌为调用方身份"""
    try:
        claims = jwt.decode(token, secret_key, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredException() from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalidException() from exc

    user_id = claims.get("user_id", claims.get("sub"))
    try:
        return Actor(user_id=int(user_id), role=Role.parse(claims.get("role", "")))
    except (TypeError, ValueError, ValidationError) as exc:
        raise TokenInvalidException("Token claims are incomplete") from exc


async def get_current_actor(
    bearer_token: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Actor:
    """获取当前调用方"""
    if not bearer_token or not bearer_token.credentials:
        raise UnauthorizedException("Missing authorization header")
    settings = get_settings()
    return decode_actor(bearer_token.credentials, settings.SECRET_KEY, settings.ALGORITHM)


def get_authorization(request: Request) -> Optional[str]:
    """原样转发给兄弟服务的 Authorization 头"""
    return request.headers.get("Authorization")


async def get_booking_service(request: Request) -> BookingApplicationService:
    return request.app.state.booking_service


async def get_payment_service(request: Request) -> PaymentApplicationService:
    return request.app.state.payment_service


async def get_summary_service(request: Request) -> BookingSummaryService:
    return request.app.state.summary_service
