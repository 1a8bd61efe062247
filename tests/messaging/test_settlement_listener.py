import asyncio
import json
from decimal import Decimal

import pytest
import structlog

from conftest import MONDAY, at
from application.ports.events import EventPublishError
from application.services.settlement_service import SettlementService
from core.config import SettlementSettings
from domain.booking.events import BookingCancelled, BookingCreated
from domain.payment.entity import PaymentStatus
from domain.payment.service import PaymentDomainService
from infrastructure.adapters.booking_event_publisher import (
    EVENT_CREATED,
    MessagingBookingEventPublisher,
)
from infrastructure.consumers.settlement_listener import SettlementListener
from infrastructure.external.messaging import (
    InMemoryBroker,
    KafkaConfig,
    MessagingConfig,
    RetryConfig,
    create_consumer,
)
from infrastructure.external.messaging.envelope import H_CORR_ID, H_EVENT_TYPE
from infrastructure.external.messaging.exceptions import PublishError
from infrastructure.external.messaging.serializers.json import JsonSerializer
from infrastructure.wiring import build_publisher


SETTINGS = SettlementSettings(group_id="payment-test")


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def messaging_cfg():
    return MessagingConfig(
        kafka=KafkaConfig(driver="inmemory"),
        retry=RetryConfig(max_attempts=2, initial_backoff_ms=1, max_backoff_ms=2),
    )


@pytest.fixture
def listener(payment_uow, broker, messaging_cfg):
    def _consumer():
        return create_consumer(messaging_cfg, JsonSerializer(), broker=broker)

    return SettlementListener(SettlementService(payment_uow, SETTINGS), _consumer, SETTINGS)


async def _eventually(predicate, timeout=3.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return result
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


def _created_event(booking_id=31, price="5000"):
    return BookingCreated(
        booking_id=booking_id,
        status="pending",
        venue_id=1,
        client_id=3,
        owner_id=7,
        start_at=at(MONDAY, 10),
        end_at=at(MONDAY, 11),
        price=Decimal(price),
    )


@pytest.mark.asyncio
async def test_event_adapter_writes_keyed_envelope(broker, messaging_cfg):
    publisher = build_publisher(messaging_cfg, broker)
    adapter = MessagingBookingEventPublisher(publisher, "booking.created", "booking.cancelled")

    with structlog.contextvars.bound_contextvars(request_id="req-1"):
        await adapter.publish_created(_created_event())
    await adapter.publish_cancelled(BookingCancelled(booking_id=31, status="cancelled", reason="rain"))

    created = broker.records("booking.created")[0]
    assert created.key == b"31"
    assert created.headers[H_CORR_ID] == b"req-1"
    assert created.headers[H_EVENT_TYPE] == EVENT_CREATED.encode()
    payload = json.loads(created.value)
    assert payload["booking_id"] == 31
    assert payload["price"] == "5000"
    assert payload["start_at"] == "2030-01-07T10:00:00Z"

    cancelled = broker.records("booking.cancelled")[0]
    assert cancelled.key == b"31"
    assert H_CORR_ID not in cancelled.headers
    await publisher.close()


@pytest.mark.asyncio
async def test_event_adapter_maps_publish_errors():
    class BrokenPublisher:
        async def publish(self, topic, env):
            raise PublishError("no leader")

    adapter = MessagingBookingEventPublisher(BrokenPublisher(), "booking.created", "booking.cancelled")
    with pytest.raises(EventPublishError):
        await adapter.publish_created(_created_event())


@pytest.mark.asyncio
async def test_listener_settles_created_and_cancelled(listener, broker, messaging_cfg, payment_uow):
    publisher = build_publisher(messaging_cfg, broker)
    adapter = MessagingBookingEventPublisher(publisher, SETTINGS.topic_created, SETTINGS.topic_cancelled)

    listener.start()
    try:
        await adapter.publish_created(_created_event())
        # 重复投递同一预订的创建事件
        await adapter.publish_created(_created_event())

        async def _payment():
            async with payment_uow(readonly=True) as uow:
                return await uow.payment_repository.get_by_booking_id(31)

        payment = await _eventually(_payment)
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("5000")

        await _eventually(
            lambda: broker.committed(SETTINGS.group_id, SETTINGS.topic_created) == 2
        )
        async with payment_uow(readonly=True) as uow:
            assert await uow.payment_repository.count_by_user(3) == 1

        async with payment_uow() as uow:
            await PaymentDomainService(uow.payment_repository, uow.refund_repository).confirm_payment(
                payment.id
            )

        await adapter.publish_cancelled(BookingCancelled(booking_id=31, status="cancelled", reason="rain"))

        async def _refunded():
            async with payment_uow(readonly=True) as uow:
                current = await uow.payment_repository.get_by_id(payment.id)
            return current if current.status == PaymentStatus.REFUNDED else None

        refunded = await _eventually(_refunded)
        assert refunded.refunded_amount == Decimal("5000")
        assert broker.records(SETTINGS.topic_created + ".dlq") == []
    finally:
        await listener.stop(timeout=2)
        await publisher.close()


@pytest.mark.asyncio
async def test_listener_dead_letters_invalid_payload(listener, broker):
    serializer = JsonSerializer()
    listener.start()
    try:
        await broker.append(SETTINGS.topic_created, b"1", serializer.dumps({"booking_id": 1}))
        await broker.append(SETTINGS.topic_created, b"2", b"{not json")

        await _eventually(
            lambda: broker.committed(SETTINGS.group_id, SETTINGS.topic_created) == 2
        )
        dead = broker.records(SETTINGS.topic_created + ".dlq")
        assert [r.key for r in dead] == [b"1", b"2"]
    finally:
        await listener.stop(timeout=2)


@pytest.mark.asyncio
async def test_listener_stop_is_idempotent(listener):
    listener.start()
    listener.start()
    await listener.stop(timeout=2)
    await listener.stop(timeout=2)
    await listener.wait()
