"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class ForbiddenException(BusinessException):
    def __init__(self, message: str = "Forbidden access to the resource"):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=message,
            error_type="Forbidden",
        )


class BookingNotFoundException(BusinessException):
    def __init__(self, booking_id: Optional[int] = None):
        details = {"booking_id": booking_id} if booking_id is not None else None
        super().__init__(
            code=BusinessCode.BOOKING_NOT_FOUND,
            message="Reservation not found",
            error_type="BookingNotFound",
            details=details,
        )


class BookingConflictException(BusinessException):
    """候选时段与场馆已有的有效预订重叠"""

    def __init__(
        self,
        venue_id: int,
        start_at: datetime,
        end_at: datetime,
        conflicting_id: Optional[int] = None,
    ):
        details = {
            "venue_id": venue_id,
            "start_at": start_at.isoformat(),
            "end_at": end_at.isoformat(),
        }
        if conflicting_id is not None:
            details["conflicting_booking_id"] = conflicting_id
        super().__init__(
            code=BusinessCode.BOOKING_CONFLICT,
            message="The requested interval overlaps an existing reservation",
            error_type="BookingConflict",
            details=details,
        )


class ScheduleMismatchException(BusinessException):
    """候选时段不符合场馆营业时间规则"""

    def __init__(self, reason: str, *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.SCHEDULE_MISMATCH,
            message=reason,
            error_type="ScheduleMismatch",
            details=details,
        )


class InvalidBookingStateException(BusinessException):
    def __init__(self, message: str, *, status: Optional[str] = None):
        super().__init__(
            code=BusinessCode.BOOKING_INVALID_STATE,
            message=message,
            error_type="InvalidBookingState",
            details={"status": status} if status else None,
            field="status",
        )


class VenueNotFoundException(BusinessException):
    def __init__(self, venue_id: int):
        super().__init__(
            code=BusinessCode.VENUE_NOT_FOUND,
            message="Venue not found",
            error_type="VenueNotFound",
            details={"venue_id": venue_id},
        )


class VenueOwnerMismatchException(BusinessException):
    def __init__(self, venue_id: int, owner_id: int):
        super().__init__(
            code=BusinessCode.VENUE_OWNER_MISMATCH,
            message="Owner does not own this venue",
            error_type="VenueOwnerMismatch",
            details={"venue_id": venue_id, "owner_id": owner_id},
            field="owner_id",
        )


class UpstreamUnavailableException(BusinessException):
    """兄弟服务超时或出错：按不可用处理，绝不视为"无冲突"。"""

    def __init__(self, service: str, reason: Optional[str] = None):
        details = {"service": service}
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=f"{service} service unavailable",
            error_type="UpstreamUnavailable",
            details=details,
        )


class BadGatewayException(BusinessException):
    """聚合读取时主资源拿不到任何响应"""

    def __init__(self, service: str, reason: Optional[str] = None):
        details = {"service": service}
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.BAD_GATEWAY,
            message=f"failed to fetch from {service} service",
            error_type="BadGateway",
            details=details,
        )


class UnauthorizedException(BusinessException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message=message,
            error_type="Unauthorized",
        )


class TokenExpiredException(BusinessException):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(
            code=BusinessCode.TOKEN_EXPIRED,
            message=message,
            error_type="TokenExpired",
        )


class TokenInvalidException(BusinessException):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(
            code=BusinessCode.TOKEN_INVALID,
            message=message,
            error_type="TokenInvalid",
        )
