"""
调用方身份（由身份服务签发的令牌解析而来）
"""
from __future__ import annotations

from enum import Enum

from pydantic import Field

from application.dto import DTOBase


class Role(str, Enum):
    CLIENT = "client"
    OWNER = "owner"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """角色名大小写不敏感（身份服务签发 "Client"/"Owner"/"Admin"）"""
        return cls((value or "").strip().lower())


class Actor(DTOBase):
    user_id: int = Field(gt=0)
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
