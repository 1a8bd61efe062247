import pytest

from infrastructure.external.messaging.base import HandleResult
from infrastructure.external.messaging.config import RetryConfig
from infrastructure.external.messaging.dispatch import MessageDispatcher
from infrastructure.external.messaging.envelope import (
    H_ATTEMPTS,
    H_ERROR_CLASS,
    H_ORIGINAL_TOPIC,
    get_attempts,
    get_header,
)
from infrastructure.external.messaging.exceptions import NonRetryableError, RetryableError
from infrastructure.external.messaging.middlewares.retry import RetryPolicy
from infrastructure.external.messaging.serializers.json import JsonSerializer


class DeadLetters:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []

    async def __call__(self, topic, key, value, headers):
        if self.fail:
            raise RuntimeError("dlq unavailable")
        self.records.append((topic, key, value, dict(headers)))


class Sleeps:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _dispatcher(dead_letters, sleeps, max_attempts=3):
    policy = RetryPolicy(RetryConfig(max_attempts=max_attempts, initial_backoff_ms=100, max_backoff_ms=250))
    return MessageDispatcher(JsonSerializer(), policy, dead_letters, sleep=sleeps)


def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(RetryConfig(max_attempts=4, initial_backoff_ms=200, max_backoff_ms=500))
    assert [policy.backoff_ms(n) for n in (1, 2, 3, 4)] == [200, 400, 500, 500]
    assert policy.decide("booking.created", 3).retry
    assert not policy.decide("booking.created", 4).retry
    assert policy.dlq_topic("booking.created") == "booking.created.dlq"
    assert policy.dlq_topic("booking.created.dlq") == "booking.created.dlq"


@pytest.mark.asyncio
async def test_ack_commits_without_dead_letter():
    dead, sleeps = DeadLetters(), Sleeps()
    seen = []

    async def handler(env):
        seen.append(env.payload)
        return HandleResult.ACK

    commit = await _dispatcher(dead, sleeps).dispatch(
        "booking.created", 0, 5, b"1", b'{"booking_id":1}', {}, handler
    )

    assert commit is True
    assert seen == [{"booking_id": 1}]
    assert dead.records == []


@pytest.mark.asyncio
async def test_transient_failure_recovers_in_place():
    dead, sleeps = DeadLetters(), Sleeps()
    calls = []

    async def handler(env):
        calls.append(1)
        if len(calls) < 3:
            raise RetryableError("database is locked")
        return HandleResult.ACK

    commit = await _dispatcher(dead, sleeps).dispatch("booking.created", 0, 0, None, b"{}", {}, handler)

    assert commit is True
    assert len(calls) == 3
    assert sleeps.delays == [0.1, 0.2]
    assert dead.records == []


@pytest.mark.asyncio
async def test_exhausted_retries_go_to_dead_letter():
    dead, sleeps = DeadLetters(), Sleeps()
    calls = []

    async def handler(env):
        calls.append(1)
        raise RetryableError("still down")

    commit = await _dispatcher(dead, sleeps).dispatch(
        "booking.created", 0, 7, b"42", b'{"booking_id":42}', {}, handler
    )

    assert commit is True
    assert len(calls) == 3
    topic, key, value, headers = dead.records[0]
    assert topic == "booking.created.dlq"
    assert key == b"42"
    assert value == b'{"booking_id":42}'
    assert get_attempts(headers) == 3
    assert get_header(headers, H_ERROR_CLASS) == "RetryableError"
    assert get_header(headers, H_ORIGINAL_TOPIC) == "booking.created"


@pytest.mark.asyncio
async def test_non_retryable_error_is_dead_lettered_immediately():
    dead, sleeps = DeadLetters(), Sleeps()
    calls = []

    async def handler(env):
        calls.append(1)
        raise NonRetryableError("invalid payload")

    commit = await _dispatcher(dead, sleeps).dispatch("booking.cancelled", 0, 0, None, b"{}", {}, handler)

    assert commit is True
    assert len(calls) == 1
    assert sleeps.delays == []
    assert dead.records[0][0] == "booking.cancelled.dlq"
    assert dead.records[0][3][H_ATTEMPTS] == b"1"


@pytest.mark.asyncio
async def test_dropped_message_is_dead_lettered():
    dead, sleeps = DeadLetters(), Sleeps()

    async def handler(env):
        return HandleResult.DROP

    commit = await _dispatcher(dead, sleeps).dispatch("booking.created", 0, 0, None, b"{}", {}, handler)

    assert commit is True
    assert len(dead.records) == 1


@pytest.mark.asyncio
async def test_undecodable_message_skips_handler():
    dead, sleeps = DeadLetters(), Sleeps()

    async def handler(env):  # pragma: no cover - must not be called
        raise AssertionError("handler called")

    commit = await _dispatcher(dead, sleeps).dispatch(
        "booking.created", 0, 0, None, b"\xff not json", {}, handler
    )

    assert commit is True
    topic, _, value, headers = dead.records[0]
    assert topic == "booking.created.dlq"
    assert value == b"\xff not json"
    assert get_header(headers, H_ERROR_CLASS) == "SerializationError"


@pytest.mark.asyncio
async def test_dead_letter_failure_blocks_commit():
    dead, sleeps = DeadLetters(fail=True), Sleeps()

    async def handler(env):
        raise NonRetryableError("bad")

    commit = await _dispatcher(dead, sleeps).dispatch("booking.created", 0, 0, None, b"{}", {}, handler)

    assert commit is False
