"""
独立结算进程入口

只运行两个结算监听器（booking.created / booking.cancelled），直到收到 SIGINT/SIGTERM。
"""
import asyncio
import signal

from core.config import get_settings
from core.logging_config import configure_logging, get_logger
from infrastructure.external.messaging import InMemoryBroker
from infrastructure.wiring import (
    build_engines,
    build_settlement_listener,
    messaging_config,
    payment_uow_factory,
)


logger = get_logger(__name__)


async def run() -> None:
    settings = get_settings()
    reservation_engine, payment_engine = build_engines(settings)
    # 结算进程只访问支付库
    await reservation_engine.dispose()

    msg_cfg = messaging_config(settings)
    broker = InMemoryBroker() if msg_cfg.kafka.driver == "inmemory" else None
    listener = build_settlement_listener(
        settings, payment_uow_factory(payment_engine), msg_cfg, broker
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    listener.start()
    waiter = asyncio.create_task(listener.wait())
    stopper = asyncio.create_task(stop_event.wait())
    try:
        done, _ = await asyncio.wait({waiter, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if waiter in done and waiter.exception() is not None:
            logger.error("settlement_worker_failed", error=str(waiter.exception()))
    finally:
        logger.info("settlement_worker_stopping")
        stopper.cancel()
        waiter.cancel()
        await listener.stop()
        await payment_engine.dispose()
        logger.info("settlement_worker_stopped")


def main() -> None:
    settings = get_settings()
    configure_logging(debug=settings.DEBUG, service="settlement-worker", level=settings.LOG_LEVEL)
    asyncio.run(run())


if __name__ == "__main__":
    main()
