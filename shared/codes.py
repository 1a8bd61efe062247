"""
Shared business codes used across layers (Domain/Core/API).

This module provides a single source of truth to avoid drift between
multiple enum definitions scattered across the codebase.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    # 成功
    SUCCESS = 0

    # 参数错误 (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003

    # 业务错误 (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # 资源未找到（通用）

    # 预订 (201xx)
    BOOKING_NOT_FOUND = 20101
    BOOKING_CONFLICT = 20102
    SCHEDULE_MISMATCH = 20103
    BOOKING_INVALID_STATE = 20104
    VENUE_NOT_FOUND = 20105
    VENUE_OWNER_MISMATCH = 20106

    # 支付与退款 (202xx)
    PAYMENT_NOT_FOUND = 20201
    PAYMENT_ALREADY_EXISTS = 20202
    PAYMENT_NOT_COMPLETED = 20203
    REFUND_EXCEEDS_PAYMENT = 20204
    PAYMENT_INVALID_STATE = 20205

    # 权限错误 (3xxxx)
    PERMISSION_ERROR = 30000
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002
    TOKEN_INVALID = 30003
    TOKEN_EXPIRED = 30004

    # 系统错误 (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    BAD_GATEWAY = 40004


__all__ = ["BusinessCode"]
