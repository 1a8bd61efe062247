"""
数据库模型基类（SQLAlchemy 2.0 风格）

预订库与支付库各自一套元数据，互不建表。
"""
from sqlalchemy.orm import DeclarativeBase


class ReservationBase(DeclarativeBase):
    pass


class PaymentBase(DeclarativeBase):
    pass


# 元数据对象用于建表与迁移
reservation_metadata = ReservationBase.metadata
payment_metadata = PaymentBase.metadata
