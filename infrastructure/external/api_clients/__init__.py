"""
API客户端模块

提供与兄弟服务集成的HTTP客户端实现
"""
from .base import BaseAPIClient, APIResponse, APIError, NotFoundError
from .upstream_reader import HTTPUpstreamReader
from .venue_client import VenueServiceClient

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "APIError",
    "NotFoundError",
    "HTTPUpstreamReader",
    "VenueServiceClient",
]
