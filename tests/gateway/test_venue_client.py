import httpx
import pytest

from domain.common.exceptions import UpstreamUnavailableException, VenueNotFoundException
from infrastructure.external.api_clients import VenueServiceClient


VENUE = {
    "id": 9,
    "owner_id": 7,
    "is_active": True,
    "weekdays": {
        "monday": {"enabled": True, "start_time": "0000-01-01T09:00:00Z", "end_time": "0000-01-01T21:00:00Z"},
        "tuesday": {"enabled": True, "start_time": "10:00", "end_time": "18:00"},
        "sunday": {"enabled": False},
    },
}


def _client(handler):
    return VenueServiceClient(
        "http://venue",
        timeout=1.0,
        max_retries=1,
        retry_delay=0.01,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_get_schedule_parses_weekdays():
    requests = []

    def handler(request):
        requests.append(request.url.path)
        return httpx.Response(200, json={"code": 0, "message": "Success", "data": VENUE})

    async with _client(handler) as client:
        venue = await client.get_schedule(9)

    assert requests == ["/venues/9"]
    assert venue.venue_id == 9
    assert venue.owner_id == 7
    assert venue.is_active
    monday = venue.weekly.for_weekday(0)
    assert monday.enabled and monday.start_time.hour == 9 and monday.end_time.hour == 21
    assert venue.weekly.for_weekday(1).start_time.hour == 10
    # 未配置的日子视为休息
    assert not venue.weekly.for_weekday(2).enabled
    assert not venue.weekly.for_weekday(6).enabled


@pytest.mark.asyncio
async def test_unknown_venue():
    async with _client(lambda request: httpx.Response(404, json={"message": "not found"})) as client:
        with pytest.raises(VenueNotFoundException):
            await client.get_schedule(404)


@pytest.mark.asyncio
async def test_server_error_is_retried_then_unavailable():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503, json={"message": "maintenance"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamUnavailableException):
            await client.get_schedule(9)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_network_error_fails_closed():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamUnavailableException):
            await client.get_schedule(9)


@pytest.mark.asyncio
async def test_malformed_schedule_is_unavailable():
    broken = {"id": 9, "owner_id": 7, "weekdays": {"monday": {"enabled": True, "start_time": "nine"}}}

    async with _client(lambda request: httpx.Response(200, json=broken)) as client:
        with pytest.raises(UpstreamUnavailableException):
            await client.get_schedule(9)
