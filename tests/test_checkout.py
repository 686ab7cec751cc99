import asyncio
from decimal import Decimal

import pytest

from app.core.config import get_settings
from app.core.errors import ValidationError
from app.core.pricing import expected_price_usd, plan_multiplier, to_minor_units
from app.main import app
from app.services import events
from app.services.exchange_rates import ExchangeRateService


def initialize_calls(upstreams):
    return upstreams.paystack_calls("/transaction/initialize")


def test_ng_monthly_plan_charges_448500_kobo(client, upstreams, observer):
    r = client.post(
        "/api/subscribe",
        json={"email": "a@x.com", "plan": "monthly", "countryCode": "NG", "deviceId": "d1"},
    )
    assert r.status_code == 200
    assert r.json() == {
        "authorization_url": "https://checkout.paystack.com/abc123",
        "reference": "ref_abc123",
        "amount": 448500,
        "currency": "NGN",
    }

    (call,) = initialize_calls(upstreams)
    assert call["email"] == "a@x.com"
    assert call["amount"] == 448500
    assert call["currency"] == "NGN"
    assert call["callback_url"] == "https://jephshield.test/verify-payment"
    assert call["metadata"] == {"plan": "monthly", "deviceId": "d1", "country": "NG"}
    assert events.CHECKOUT_INITIALIZED in observer.names()


def test_initialize_sends_secret_key_as_bearer(client, upstreams):
    client.post("/api/subscribe", json={"email": "a@x.com", "plan": "monthly", "countryCode": "NG"})
    request = [r for r in upstreams.requests if r.url.host == "api.paystack.co"][0]
    assert request.headers["authorization"] == "Bearer sk_test_webhook_secret"


def test_country_comes_from_ip_when_not_given(client, upstreams):
    r = client.post(
        "/api/subscribe",
        json={"email": "a@x.com", "plan": "monthly"},
        headers={"x-forwarded-for": "8.8.8.8, 10.0.0.1"},
    )
    assert r.status_code == 200
    # US pays 4.99 and is charged in USD
    assert r.json()["amount"] == 499
    assert r.json()["currency"] == "USD"


def test_geolocation_failure_falls_back_to_default_country(client, upstreams):
    upstreams.geo_down = True
    r = client.post(
        "/api/subscribe",
        json={"email": "a@x.com", "plan": "monthly"},
        headers={"x-forwarded-for": "8.8.8.8"},
    )
    assert r.status_code == 200
    assert r.json()["currency"] == "NGN"
    assert r.json()["amount"] == 448500


def test_fx_outage_uses_fallback_rate(client, upstreams, settings):
    upstreams.fx_down = True
    r = client.post("/api/subscribe", json={"email": "a@x.com", "plan": "monthly", "countryCode": "NG"})
    assert r.status_code == 200
    expected = to_minor_units(Decimal("2.99") * settings.fallback_usd_rates["NGN"])
    assert r.json()["amount"] == expected


def test_quarterly_plan_multiplies_price(client):
    r = client.post("/api/subscribe", json={"email": "a@x.com", "plan": "quarterly", "countryCode": "NG"})
    assert r.json()["amount"] == 448500 * 3


def test_legacy_amount_checkout_charges_amount_in_minor_units(client, upstreams):
    r = client.post("/api/subscribe", json={"email": "a@x.com", "amount": 4500})
    assert r.status_code == 200
    (call,) = initialize_calls(upstreams)
    assert call["amount"] == 450000
    assert call["currency"] == "NGN"


def test_missing_email_is_400(client, upstreams):
    r = client.post("/api/subscribe", json={"plan": "monthly"})
    assert r.status_code == 400
    assert "email" in r.json()["message"]
    assert initialize_calls(upstreams) == []


def test_missing_plan_and_amount_is_400(client, upstreams):
    r = client.post("/api/subscribe", json={"email": "a@x.com"})
    assert r.status_code == 400
    assert r.json() == {"message": "Missing email or amount"}
    assert initialize_calls(upstreams) == []


def test_unknown_plan_is_400(client, upstreams):
    r = client.post("/api/subscribe", json={"email": "a@x.com", "plan": "weekly", "countryCode": "NG"})
    assert r.status_code == 400
    assert "Unknown plan" in r.json()["message"]
    assert initialize_calls(upstreams) == []


def test_provider_error_is_500(client, upstreams, observer):
    upstreams.paystack_status = 401
    r = client.post("/api/subscribe", json={"email": "a@x.com", "plan": "monthly", "countryCode": "NG"})
    assert r.status_code == 500
    assert r.json() == {"message": "Payment initialization failed"}
    assert events.CHECKOUT_FAILED in observer.names()


def test_missing_secret_key_is_500_without_calling_provider(client, settings, upstreams):
    app.dependency_overrides[get_settings] = lambda: settings.with_overrides(paystack_secret_key="")
    r = client.post("/api/subscribe", json={"email": "a@x.com", "plan": "monthly", "countryCode": "NG"})
    assert r.status_code == 500
    assert initialize_calls(upstreams) == []


def test_rates_are_cached(settings, upstreams):
    service = ExchangeRateService(settings, upstreams.transport)
    assert asyncio.run(service.get_rate("NGN")) == Decimal("1500")
    upstreams.usd_rates["NGN"] = 2000
    assert asyncio.run(service.get_rate("ngn")) == Decimal("1500")
    fx_calls = [r for r in upstreams.requests if r.url.host == "fx.test"]
    assert len(fx_calls) == 1


def test_reference_currency_needs_no_lookup(settings, upstreams):
    service = ExchangeRateService(settings, upstreams.transport)
    assert asyncio.run(service.get_rate("USD")) == Decimal("1")
    assert upstreams.requests == []


def test_rate_missing_from_response_uses_fallback(settings, upstreams):
    service = ExchangeRateService(settings, upstreams.transport)
    assert asyncio.run(service.get_rate("ZAR")) == settings.fallback_usd_rates["ZAR"]


@pytest.mark.parametrize(
    "amount, minor",
    [(Decimal("4485"), 448500), (Decimal("0.005"), 1), (Decimal("4.994"), 499), (Decimal("4.995"), 500)],
)
def test_minor_units_round_half_up(amount, minor):
    assert to_minor_units(amount) == minor


def test_price_floor_per_country_and_plan():
    assert expected_price_usd("NG", "monthly") == Decimal("2.99")
    assert expected_price_usd("ZA", None) == Decimal("3.49")
    assert expected_price_usd("GB", "biannual") == Decimal("29.94")
    assert expected_price_usd(None, "yearly") == Decimal("35.88")


def test_unknown_plan_multiplier_raises():
    with pytest.raises(ValidationError):
        plan_multiplier("lifetime")
