"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Payment, Refund


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录；booking_id 已存在时抛出 PaymentAlreadyExistsException"""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int, *, for_update: bool = False) -> Optional[Payment]:
        """根据ID获取支付；for_update=True 时加行锁"""
        pass

    @abstractmethod
    async def get_by_booking_id(
        self, booking_id: int, *, for_update: bool = False
    ) -> Optional[Payment]:
        """根据预订ID获取支付"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        """获取用户的支付列表（按创建时间倒序）"""
        pass

    @abstractmethod
    async def count_by_user(self, user_id: int) -> int:
        """统计用户的支付数量"""
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """更新支付记录"""
        pass


class RefundRepository(ABC):
    """退款仓储抽象接口"""

    @abstractmethod
    async def create(self, refund: Refund) -> Refund:
        """创建退款记录"""
        pass

    @abstractmethod
    async def list_by_payment(self, payment_id: int) -> List[Refund]:
        """获取支付的退款列表"""
        pass
