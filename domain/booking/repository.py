"""
预订仓储接口 - 定义预订数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import Booking


class BookingRepository(ABC):
    """预订仓储抽象接口"""

    @abstractmethod
    async def create(self, booking: Booking) -> Booking:
        """创建预订；与已有有效预订重叠时抛出 BookingConflictException"""
        pass

    @abstractmethod
    async def get_by_id(self, booking_id: int, *, for_update: bool = False) -> Optional[Booking]:
        """根据ID获取预订"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """更新预订"""
        pass

    @abstractmethod
    async def list_by_client(self, client_id: int, skip: int = 0, limit: int = 100) -> List[Booking]:
        """获取客户的预订列表"""
        pass

    @abstractmethod
    async def count_by_client(self, client_id: int) -> int:
        """统计客户的预订数量"""
        pass

    @abstractmethod
    async def list_for_venue_between(
        self,
        venue_id: int,
        start_at: datetime,
        end_at: datetime,
        *,
        include_cancelled: bool = False,
    ) -> List[Booking]:
        """获取场馆在 [start_at, end_at) 内有交集的预订，按开始时间排序"""
        pass
