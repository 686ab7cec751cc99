import json
from datetime import datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.clock import get_clock
from app.core.config import Settings, get_settings
from app.db.base import Base
from app.db.session import get_db
from app.dependencies.services import get_http_transport
from app.main import app
from app.services.events import RecordingObserver, get_observer
from app.services.exchange_rates import clear_rate_cache
from app.services.signature import compute_signature

WEBHOOK_SECRET = "sk_test_webhook_secret"
T0 = datetime(2026, 10, 1, 12, 0, 0)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        paystack_secret_key=WEBHOOK_SECRET,
        paystack_base_url="https://api.paystack.co",
        callback_url="https://jephshield.test/verify-payment",
        exchange_rate_api_url="https://fx.test/v6/latest/USD",
        geolocation_api_url="https://geo.test/json/{ip}",
        jwt_secret="test-jwt-secret",
        http_timeout_seconds=2.0,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def observer():
    return RecordingObserver()


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(T0)


class FakeUpstreams:
    """In-process stand-in for Paystack, the FX API and the geolocation API."""

    def __init__(self):
        self.requests = []
        self.usd_rates = {"NGN": 1500, "GHS": 15, "KES": 130, "EUR": 0.92}
        self.country_by_ip = {"41.58.0.1": "NG", "8.8.8.8": "US"}
        self.fx_down = False
        self.geo_down = False
        self.paystack_status = 200
        self.verify_data = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host == "fx.test":
            if self.fx_down:
                raise httpx.ConnectError("fx unreachable", request=request)
            return httpx.Response(200, json={"result": "success", "rates": self.usd_rates})
        if host == "geo.test":
            if self.geo_down:
                raise httpx.ReadTimeout("geo timed out", request=request)
            ip = request.url.path.rsplit("/", 1)[-1]
            country = self.country_by_ip.get(ip)
            if not country:
                return httpx.Response(200, json={"status": "fail"})
            return httpx.Response(200, json={"status": "success", "countryCode": country})
        if host == "api.paystack.co":
            if self.paystack_status != 200:
                return httpx.Response(self.paystack_status, json={"status": False, "message": "boom"})
            if request.url.path == "/transaction/initialize":
                return httpx.Response(
                    200,
                    json={
                        "status": True,
                        "message": "Authorization URL created",
                        "data": {
                            "authorization_url": "https://checkout.paystack.com/abc123",
                            "access_code": "abc123",
                            "reference": "ref_abc123",
                        },
                    },
                )
            if request.url.path.startswith("/transaction/verify/"):
                return httpx.Response(200, json={"status": True, "data": self.verify_data})
        return httpx.Response(404, json={"status": False})

    def paystack_calls(self, path: str):
        return [
            json.loads(r.content) if r.content else None
            for r in self.requests
            if r.url.host == "api.paystack.co" and r.url.path == path
        ]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def upstreams():
    clear_rate_cache()
    yield FakeUpstreams()
    clear_rate_cache()


@pytest.fixture
def client(engine, settings, observer, clock, upstreams):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_observer] = lambda: observer
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_http_transport] = lambda: upstreams.transport
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def charge_success(email="a@x.com", amount=448500, currency="NGN", reference="ref_1", **metadata):
    return {
        "event": "charge.success",
        "data": {
            "reference": reference,
            "amount": amount,
            "currency": currency,
            "status": "success",
            "paid_at": "2026-10-01T10:00:00.000Z",
            "customer": {"email": email},
            "metadata": metadata,
        },
    }


def signed(payload: dict, secret: str = WEBHOOK_SECRET):
    """Serialize like Paystack does (compact JSON) and sign the exact bytes."""
    body = json.dumps(payload, separators=(",", ":")).encode()
    return body, {"x-paystack-signature": compute_signature(body, secret), "content-type": "application/json"}
