"""
组合根辅助函数

HTTP 进程（main.py）与独立结算进程（settlement_main.py）共用的组装逻辑。
这里是唯一把 Settings 翻译成具体基础设施对象的地方。
"""
from __future__ import annotations

import functools
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from application.services.settlement_service import SettlementService
from core.config import Settings
from infrastructure.consumers.settlement_listener import SettlementListener
from infrastructure.database import build_engine, build_session_factory
from infrastructure.external.messaging import InMemoryBroker, create_consumer, create_publisher
from infrastructure.external.messaging.base import Consumer, Publisher
from infrastructure.external.messaging.config import MessagingConfig
from infrastructure.external.messaging.config_builder import messaging_config_from_settings
from infrastructure.external.messaging.middlewares import LoggingMiddleware, MetricsMiddleware
from infrastructure.external.messaging.serializers.json import JsonSerializer
from infrastructure.unit_of_work import SQLAlchemyBookingUnitOfWork, SQLAlchemyPaymentUnitOfWork


def build_engines(settings: Settings) -> tuple[AsyncEngine, AsyncEngine]:
    """预订库与支付库各一个引擎；DSN 相同也不共享事务"""
    reservation = build_engine(settings.database.url, echo=settings.database.echo)
    payment = build_engine(settings.payment_database_url, echo=settings.database.echo)
    return reservation, payment


def booking_uow_factory(engine: AsyncEngine) -> Callable[..., SQLAlchemyBookingUnitOfWork]:
    return functools.partial(SQLAlchemyBookingUnitOfWork, build_session_factory(engine))


def payment_uow_factory(engine: AsyncEngine) -> Callable[..., SQLAlchemyPaymentUnitOfWork]:
    return functools.partial(SQLAlchemyPaymentUnitOfWork, build_session_factory(engine))


def messaging_config(settings: Settings) -> MessagingConfig:
    return messaging_config_from_settings(settings.kafka, settings.settlement)


def build_publisher(cfg: MessagingConfig, broker: Optional[InMemoryBroker] = None) -> Publisher:
    middlewares = [LoggingMiddleware(), MetricsMiddleware()]
    return create_publisher(cfg, JsonSerializer(), middlewares, broker=broker)


def build_settlement_listener(
    settings: Settings,
    uow_factory: Callable[..., SQLAlchemyPaymentUnitOfWork],
    cfg: MessagingConfig,
    broker: Optional[InMemoryBroker] = None,
) -> SettlementListener:
    serializer = JsonSerializer()

    def _consumer() -> Consumer:
        return create_consumer(
            cfg, serializer, [LoggingMiddleware(), MetricsMiddleware()], broker=broker
        )

    service = SettlementService(uow_factory, settings.settlement)
    return SettlementListener(service, _consumer, settings.settlement)
