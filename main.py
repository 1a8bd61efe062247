"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import bookings as bookings_routes
from api.routes import payments as payments_routes
from api.routes import venues as venues_routes
from application.services.booking_service import BookingApplicationService
from application.services.booking_summary_service import BookingSummaryService
from application.services.payment_service import PaymentApplicationService
from core.config import Settings, get_settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from domain.booking.availability import AvailabilityEngine
from infrastructure.adapters.booking_event_publisher import MessagingBookingEventPublisher
from infrastructure.database import create_tables
from infrastructure.external.api_clients import HTTPUpstreamReader, VenueServiceClient
from infrastructure.external.messaging import InMemoryBroker
from infrastructure.models import payment_metadata, reservation_metadata
from infrastructure.wiring import (
    booking_uow_factory,
    build_engines,
    build_publisher,
    build_settlement_listener,
    messaging_config,
    payment_uow_factory,
)


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理：组装两套数据库、消息发布者、兄弟服务客户端与（可选的）结算监听器"""
        reservation_engine, payment_engine = build_engines(settings)

        # 启动时创建数据库表（仅开发环境）。生产应使用 Alembic 迁移
        if settings.DEBUG:
            await create_tables(reservation_engine, reservation_metadata)
            await create_tables(payment_engine, payment_metadata)
            logger.info("database_initialized", message="Database tables created (development)")
        else:
            logger.info(
                "database_migrations_required",
                message="No auto-create in production, run 'alembic -x db=reservation upgrade reservation@head' and 'alembic -x db=payment upgrade payment@head'"
            )

        msg_cfg = messaging_config(settings)
        broker = InMemoryBroker() if msg_cfg.kafka.driver == "inmemory" else None
        publisher = build_publisher(msg_cfg, broker)

        venue_client = VenueServiceClient(
            settings.services.venue_url,
            timeout=settings.services.venue_timeout,
            max_retries=settings.services.venue_max_retries,
            debug=settings.DEBUG,
        )
        readers = [
            HTTPUpstreamReader(settings.services.reservation_url, timeout=settings.services.summary_timeout),
            HTTPUpstreamReader(settings.services.venue_url, timeout=settings.services.summary_timeout),
            HTTPUpstreamReader(settings.services.payment_url, timeout=settings.services.summary_timeout),
        ]

        engine = AvailabilityEngine(
            min_duration=timedelta(minutes=settings.booking.min_duration_minutes),
            tz=ZoneInfo(settings.booking.venue_timezone),
        )
        app.state.booking_service = BookingApplicationService(
            uow_factory=booking_uow_factory(reservation_engine),
            venues=venue_client,
            publisher=MessagingBookingEventPublisher(
                publisher,
                settings.booking.topic_created,
                settings.booking.topic_cancelled,
            ),
            engine=engine,
        )
        payments_uow = payment_uow_factory(payment_engine)
        app.state.payment_service = PaymentApplicationService(
            payments_uow,
            default_currency=settings.settlement.default_currency,
        )
        app.state.summary_service = BookingSummaryService(*readers)
        app.state.message_broker = broker

        listener = None
        if settings.settlement.enabled:
            listener = build_settlement_listener(settings, payments_uow, msg_cfg, broker)
            listener.start()
        app.state.settlement_listener = listener

        logger.info(
            "application_started",
            messaging_driver=msg_cfg.kafka.driver,
            settlement_enabled=listener is not None,
        )

        yield

        # 关闭时的清理工作
        if listener is not None:
            await listener.stop()
        await publisher.close()
        await venue_client.close()
        for reader in readers:
            await reader.close()
        await reservation_engine.dispose()
        await payment_engine.dispose()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="场馆预订、结算与支付服务",
    )

    # 添加中间件（注意顺序：从下往上执行）
    # 1. 日志中间件（依赖request_id）
    app.add_middleware(LoggingMiddleware)

    # 2. Request ID中间件（最先执行，为后续中间件提供request_id）
    app.add_middleware(RequestIDMiddleware)

    # 3. CORS中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册全局异常处理器
    register_exception_handlers(app)

    # 注册路由
    app.include_router(bookings_routes.router, prefix="/api/v1")
    app.include_router(bookings_routes.singular_router, prefix="/api/v1")
    app.include_router(venues_routes.router, prefix="/api/v1")
    app.include_router(payments_routes.router, prefix="/api/v1")

    # 根路径
    @app.get("/", tags=["Root"])
    async def root():
        """API根路径"""
        return success_response(
            data={
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "docs": "/docs",
                "redoc": "/redoc"
            },
            message="Welcome"
        )

    # 健康检查
    @app.get("/health", tags=["Health"])
    async def health_check():
        """健康检查端点"""
        return success_response(data={"status": "healthy"}, message="OK")

    return app


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging(debug=get_settings().DEBUG, service="booking-api", level=get_settings().LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
