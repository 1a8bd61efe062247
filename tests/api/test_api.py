from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest
import pytest_asyncio

from conftest import MONDAY, NOW, OWNER_ID, at
from api.dependencies import decode_actor
from application.dtos.auth import Role
from application.services.booking_service import PUBLISH_WARNING, BookingApplicationService
from application.services.booking_summary_service import BookingSummaryService
from application.services.payment_service import PaymentApplicationService
from core.config import get_settings
from core.exceptions import business_code_to_http_status
from domain.common.exceptions import TokenExpiredException, TokenInvalidException
from infrastructure.external.api_clients import HTTPUpstreamReader
from main import create_app
from shared.codes import BusinessCode


def _token(user_id=3, role="Client", *, expires_in=timedelta(hours=1), secret=None):
    settings = get_settings()
    claims = {"user_id": user_id, "role": role, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _auth(user_id=3, role="Client"):
    return {"Authorization": f"Bearer {_token(user_id, role)}"}


def _booking_body(start_hour=10, end_hour=11):
    return {
        "venue_id": 1,
        "owner_id": OWNER_ID,
        "start_at": at(MONDAY, start_hour).isoformat(),
        "end_at": at(MONDAY, end_hour).isoformat(),
        "price": "5000.00",
    }


def _summary_handler(request):
    if request.url.path.endswith("/payment"):
        return httpx.Response(404, json={"code": 20201, "message": "payment not found", "data": None})
    if request.url.path.startswith("/venues/"):
        return httpx.Response(200, json={"id": 1, "name": "Court"})
    if request.url.path.endswith("/bookings/404"):
        return httpx.Response(404, json={"code": 20101, "message": "Reservation not found", "data": None})
    return httpx.Response(200, json={"code": 0, "message": "Success", "data": {"id": 5, "venue_id": 1}})


@pytest.fixture
def app(booking_uow, payment_uow, fake_venues, publisher, availability_engine):
    app = create_app()
    transport = httpx.MockTransport(_summary_handler)
    app.state.booking_service = BookingApplicationService(
        booking_uow, fake_venues, publisher, availability_engine, clock=lambda: NOW
    )
    app.state.payment_service = PaymentApplicationService(payment_uow)
    app.state.summary_service = BookingSummaryService(
        HTTPUpstreamReader("http://reservation/api/v1", transport=transport),
        HTTPUpstreamReader("http://venue", transport=transport),
        HTTPUpstreamReader("http://payment/api/v1", transport=transport),
    )
    return app


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


def test_decode_actor_roles_and_errors():
    settings = get_settings()
    actor = decode_actor(_token(7, "Owner"), settings.SECRET_KEY, settings.ALGORITHM)
    assert actor.user_id == 7 and actor.role == Role.OWNER

    with pytest.raises(TokenExpiredException):
        decode_actor(_token(expires_in=timedelta(seconds=-5)), settings.SECRET_KEY, settings.ALGORITHM)
    with pytest.raises(TokenInvalidException):
        decode_actor(_token(secret="another-secret"), settings.SECRET_KEY, settings.ALGORITHM)
    with pytest.raises(TokenInvalidException):
        decode_actor(_token(role="Guest"), settings.SECRET_KEY, settings.ALGORITHM)


def test_business_codes_map_to_http_status():
    assert business_code_to_http_status(BusinessCode.BOOKING_CONFLICT) == 409
    assert business_code_to_http_status(BusinessCode.SCHEDULE_MISMATCH) == 400
    assert business_code_to_http_status(BusinessCode.BOOKING_NOT_FOUND) == 404
    assert business_code_to_http_status(BusinessCode.SERVICE_UNAVAILABLE) == 503
    assert business_code_to_http_status(BusinessCode.BAD_GATEWAY) == 502
    assert business_code_to_http_status(99999) == 400


@pytest.mark.asyncio
async def test_health_and_request_id(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-42"})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}
    assert resp.headers["X-Request-ID"] == "req-42"


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client):
    resp = await client.post("/api/v1/bookings", json=_booking_body())
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    assert resp.json()["code"] == BusinessCode.UNAUTHORIZED


@pytest.mark.asyncio
async def test_expired_token(client):
    headers = {"Authorization": f"Bearer {_token(expires_in=timedelta(seconds=-5))}"}
    resp = await client.get("/api/v1/bookings", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["code"] == BusinessCode.TOKEN_EXPIRED


@pytest.mark.asyncio
async def test_booking_lifecycle_over_http(client, publisher):
    created = await client.post("/api/v1/bookings", json=_booking_body(), headers=_auth())
    assert created.status_code == 201
    body = created.json()
    assert body["code"] == 0
    assert body["warning"] is None
    assert body["data"]["event_published"] is True
    booking = body["data"]["booking"]
    assert booking["status"] == "pending"
    assert booking["client_id"] == 3
    booking_id = booking["id"]

    conflict = await client.post(
        "/api/v1/booking", json=_booking_body(10, 12), headers=_auth(user_id=4)
    )
    assert conflict.status_code == 409
    assert conflict.json()["code"] == BusinessCode.BOOKING_CONFLICT

    fetched = await client.get(f"/api/v1/bookings/{booking_id}", headers=_auth())
    assert fetched.status_code == 200
    assert fetched.json()["data"]["duration"] == 60

    listed = await client.get("/api/v1/bookings", headers=_auth())
    assert listed.json()["data"]["total"] == 1

    updated = await client.put(
        f"/api/v1/bookings/{booking_id}", json={"price": "6000"}, headers=_auth()
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["booking"]["price"] == "6000.00"

    cancelled = await client.post(
        f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "rain"}, headers=_auth(OWNER_ID, "Owner")
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["booking"]["status"] == "cancelled"

    again = await client.post(
        f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "rain"}, headers=_auth()
    )
    assert again.status_code == 400
    assert again.json()["code"] == BusinessCode.BOOKING_INVALID_STATE

    assert len(publisher.created) == 1
    assert len(publisher.cancelled) == 1


@pytest.mark.asyncio
async def test_validation_and_schedule_errors(client):
    missing = await client.post(
        "/api/v1/bookings", json={"venue_id": 1, "owner_id": OWNER_ID}, headers=_auth()
    )
    assert missing.status_code == 422
    assert missing.json()["code"] == BusinessCode.PARAM_VALIDATION_ERROR

    outside = await client.post("/api/v1/bookings", json=_booking_body(20, 22), headers=_auth())
    assert outside.status_code == 400
    assert outside.json()["code"] == BusinessCode.SCHEDULE_MISMATCH

    unknown = await client.get("/api/v1/bookings/999", headers=_auth())
    assert unknown.status_code == 404

    blank = await client.post("/api/v1/bookings/1/cancel", json={"reason": "  "}, headers=_auth())
    assert blank.status_code == 422


@pytest.mark.asyncio
async def test_degraded_create_returns_warning(client, publisher):
    publisher.fail = True

    resp = await client.post("/api/v1/bookings", json=_booking_body(), headers=_auth())

    assert resp.status_code == 201
    body = resp.json()
    assert body["warning"] == PUBLISH_WARNING
    assert body["data"]["event_published"] is False


@pytest.mark.asyncio
async def test_availability_is_public(client):
    await client.post("/api/v1/bookings", json=_booking_body(10, 11), headers=_auth())

    resp = await client.get("/api/v1/venues/1/availability", params={"date": MONDAY.isoformat()})

    assert resp.status_code == 200
    slots = resp.json()["data"]["slots"]
    assert [(s["start_at"][11:16], s["end_at"][11:16]) for s in slots] == [
        ("09:00", "10:00"),
        ("11:00", "21:00"),
    ]

    owner_view = await client.get(
        "/api/v1/venues/1/bookings", params={"date": MONDAY.isoformat()}, headers=_auth(OWNER_ID, "Owner")
    )
    assert owner_view.status_code == 200
    assert len(owner_view.json()["data"]) == 1

    forbidden = await client.get("/api/v1/venues/1/bookings", headers=_auth())
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_payments_over_http(client):
    created = await client.post(
        "/api/v1/payments", json={"booking_id": 5, "amount": "5000"}, headers=_auth()
    )
    assert created.status_code == 201
    payment_id = created.json()["data"]["id"]

    by_booking = await client.get("/api/v1/bookings/5/payment", headers=_auth())
    assert by_booking.json()["data"]["id"] == payment_id

    too_much = await client.post(
        f"/api/v1/payments/{payment_id}/refund",
        json={"amount": "5000.01", "reason": "refund request"},
        headers=_auth(),
    )
    assert too_much.status_code == 400
    assert too_much.json()["code"] == BusinessCode.REFUND_EXCEEDS_PAYMENT

    refunded = await client.post(
        f"/api/v1/payments/{payment_id}/refund",
        json={"amount": "5000", "reason": "refund request"},
        headers=_auth(),
    )
    assert refunded.status_code == 200
    assert refunded.json()["data"]["payment"]["status"] == "refunded"

    listed = await client.get("/api/v1/payments", headers={**_auth(), "X-User-Id": "3"})
    assert listed.json()["data"]["total"] == 1

    stranger = await client.get(f"/api/v1/payments/{payment_id}", headers=_auth(user_id=4))
    assert stranger.status_code == 403

    duplicate = await client.post(
        "/api/v1/payments", json={"booking_id": 5, "amount": "1"}, headers=_auth()
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_summary_partial_and_passthrough(client):
    resp = await client.get("/api/v1/bookings/5/summary", headers=_auth())
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["booking"] == {"id": 5, "venue_id": 1}
    assert data["venue"] == {"id": 1, "name": "Court"}
    assert data["payment"] is None
    assert data["payment_error"] == "payment service status 404"

    missing = await client.get("/api/v1/bookings/404/summary", headers=_auth())
    assert missing.status_code == 404
    assert missing.json()["code"] == 20101


def test_booking_routes_expose_put_update_and_singular_create(app):
    routes = {(route.path, method) for route in app.routes for method in getattr(route, "methods", ())}
    assert ("/api/v1/bookings/{booking_id}", "PUT") in routes
    assert ("/api/v1/bookings/{booking_id}", "PATCH") not in routes
    assert ("/api/v1/booking", "POST") in routes
    assert ("/api/v1/bookings", "POST") in routes


@pytest.mark.asyncio
async def test_singular_create_path(client, publisher):
    resp = await client.post("/api/v1/booking", json=_booking_body(), headers=_auth())

    assert resp.status_code == 201
    assert resp.json()["data"]["booking"]["status"] == "pending"
    assert len(publisher.created) == 1
