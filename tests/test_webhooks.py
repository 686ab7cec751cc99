import json

import pytest

from app.core.config import get_settings
from app.main import app
from app.models.payment import Payment
from app.models.premium_account import PremiumAccount
from app.services import events
from app.services.signature import compute_signature
from tests.conftest import WEBHOOK_SECRET, charge_success, signed


def is_premium(client, email, device_id=None):
    params = {"email": email}
    if device_id:
        params["deviceId"] = device_id
    r = client.get("/api/is-premium", params=params)
    assert r.status_code == 200
    return r.json()["isPremium"]


def test_bad_signature_is_401_and_grants_nothing(client, db, observer):
    body, headers = signed(charge_success(deviceId="d1"), secret="wrong")
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 401
    assert r.json() == {"message": "Invalid webhook signature"}
    assert db.query(PremiumAccount).count() == 0
    assert events.WEBHOOK_REJECTED in observer.names()


def test_missing_signature_is_401(client):
    body, _ = signed(charge_success(deviceId="d1"))
    r = client.post("/verify-payment", content=body, headers={"content-type": "application/json"})
    assert r.status_code == 401


def test_missing_secret_rejects_even_self_signed(client, settings):
    app.dependency_overrides[get_settings] = lambda: settings.with_overrides(paystack_secret_key="")
    body, headers = signed(charge_success(deviceId="d1"), secret="")
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 401


def test_signature_over_raw_bytes_not_reserialized_json(client):
    payload = charge_success(deviceId="d1")
    _, headers = signed(payload)
    pretty = json.dumps(payload, indent=2).encode()
    r = client.post("/verify-payment", content=pretty, headers=headers)
    assert r.status_code == 401


def test_full_price_ngn_payment_grants_premium_to_device(client, db, observer):
    body, headers = signed(charge_success(email="a@x.com", amount=448500, deviceId="d1", plan="monthly"))
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"status": "success"}

    assert is_premium(client, "a@x.com", "d1") is True
    assert is_premium(client, "a@x.com", "d2") is False
    assert events.ENTITLEMENT_GRANTED in observer.names()

    payment = db.query(Payment).filter(Payment.reference == "ref_1").one()
    assert payment.status == "granted"
    assert payment.currency == "NGN"
    assert str(payment.amount) == "4485.00"


def test_underpayment_is_acknowledged_but_withheld(client, db, observer):
    # 2990 NGN at 1500 NGN/USD is 1.99 USD, below the 2.99 monthly floor
    body, headers = signed(charge_success(email="a@x.com", amount=299000, deviceId="d1"))
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200

    assert is_premium(client, "a@x.com", "d1") is False
    assert events.ENTITLEMENT_WITHHELD in observer.names()
    payment = db.query(Payment).filter(Payment.reference == "ref_1").one()
    assert payment.status == "withheld"


def test_multi_month_plan_requires_multiplied_price(client):
    # One month's worth for a yearly plan is not enough
    body, headers = signed(charge_success(amount=448500, deviceId="d1", plan="yearly"))
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert is_premium(client, "a@x.com", "d1") is False

    body, headers = signed(
        charge_success(amount=448500 * 12, deviceId="d1", plan="yearly", reference="ref_2")
    )
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert is_premium(client, "a@x.com", "d1") is True


def test_non_charge_event_is_ignored_with_200(client, db, observer):
    payload = charge_success(deviceId="d1")
    payload["event"] = "transfer.success"
    body, headers = signed(payload)
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert db.query(PremiumAccount).count() == 0
    assert events.WEBHOOK_IGNORED in observer.names()


def test_charge_without_email_is_acknowledged_without_grant(client, db):
    payload = charge_success(deviceId="d1")
    payload["data"]["customer"] = {}
    body, headers = signed(payload)
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert db.query(PremiumAccount).count() == 0


def test_charge_without_device_is_not_granted_while_binding_enabled(client, db):
    body, headers = signed(charge_success())
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert db.query(PremiumAccount).count() == 0


def test_signed_garbage_is_acknowledged(client, db):
    body = b"not json at all"
    r = client.post(
        "/verify-payment",
        content=body,
        headers={"x-paystack-signature": compute_signature(body, WEBHOOK_SECRET)},
    )
    assert r.status_code == 200
    assert db.query(PremiumAccount).count() == 0


def test_replayed_reference_is_processed_once(client, db, observer):
    body, headers = signed(charge_success(deviceId="d1"))
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200

    assert observer.names().count(events.ENTITLEMENT_GRANTED) == 1
    assert db.query(Payment).count() == 1


def test_latest_payment_rebinds_device(client):
    body, headers = signed(charge_success(deviceId="d1", reference="ref_1"))
    client.post("/verify-payment", content=body, headers=headers)
    body, headers = signed(charge_success(deviceId="d2", reference="ref_2"))
    client.post("/verify-payment", content=body, headers=headers)

    assert is_premium(client, "a@x.com", "d1") is False
    assert is_premium(client, "a@x.com", "d2") is True


def test_legacy_x_signature_header_is_accepted(client):
    body, headers = signed(charge_success(deviceId="d1"))
    headers = {"x-signature": headers["x-paystack-signature"]}
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert is_premium(client, "a@x.com", "d1") is True


def test_is_premium_requires_email(client):
    r = client.get("/api/is-premium")
    assert r.status_code == 400
    assert r.json() == {"message": "Email is required"}


def test_unknown_email_is_not_premium(client):
    assert is_premium(client, "nobody@x.com", "d1") is False


def test_callback_verifies_and_grants(client, upstreams):
    upstreams.verify_data = {
        "status": "success",
        "reference": "ref_cb",
        "amount": 448500,
        "currency": "NGN",
        "customer": {"email": "cb@x.com"},
        "metadata": {"deviceId": "d9", "plan": "monthly"},
    }
    r = client.get("/verify-payment", params={"reference": "ref_cb"})
    assert r.status_code == 200
    assert r.text == "Payment verified successfully. Access granted."
    assert is_premium(client, "cb@x.com", "d9") is True

    # The webhook for the same payment arriving later is a no-op
    body, headers = signed(charge_success(email="cb@x.com", reference="ref_cb", deviceId="d9"))
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200


def test_callback_reports_unsuccessful_payment(client, upstreams):
    upstreams.verify_data = {"status": "abandoned", "reference": "ref_x"}
    r = client.get("/verify-payment", params={"reference": "ref_x"})
    assert r.status_code == 200
    assert r.text == "Payment not successful: abandoned"


def test_callback_without_reference_is_400(client):
    r = client.get("/verify-payment")
    assert r.status_code == 400
    assert r.json() == {"message": "Missing payment reference."}


def test_callback_provider_failure_is_500(client, upstreams):
    upstreams.paystack_status = 502
    r = client.get("/verify-payment", params={"reference": "ref_x"})
    assert r.status_code == 500
    assert r.json() == {"message": "Payment verification failed"}


def test_non_string_country_and_plan_fall_back_to_default_price(client):
    body, headers = signed(charge_success(deviceId="d1", country=234, plan=["yearly"]))
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert is_premium(client, "a@x.com", "d1") is True


def test_non_string_email_is_acknowledged_without_grant(client, db):
    payload = charge_success(deviceId="d1")
    payload["data"]["customer"] = {"email": ["a@x.com"]}
    body, headers = signed(payload)
    r = client.post("/verify-payment", content=body, headers=headers)
    assert r.status_code == 200
    assert db.query(PremiumAccount).count() == 0


def test_non_string_reference_and_device_do_not_break_processing(client, db):
    payload = charge_success(deviceId=42)
    payload["data"]["reference"] = {"id": "ref_1"}
    payload["data"]["currency"] = 566
    body, headers = signed(payload)
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert is_premium(client, "a@x.com", "42") is True
    assert db.query(Payment).count() == 0


def test_numeric_reference_is_recorded_as_text(client, db):
    body, headers = signed(charge_success(deviceId="d1", reference=987654))
    assert client.post("/verify-payment", content=body, headers=headers).status_code == 200
    assert db.query(Payment).one().reference == "987654"


@pytest.mark.parametrize("reference", ["../../customer", "..", "ref 1", "ref/1", "ref\n"])
def test_callback_rejects_unsafe_reference_without_calling_provider(client, upstreams, reference):
    r = client.get("/verify-payment", params={"reference": reference})
    assert r.status_code == 400
    assert r.json() == {"message": "Invalid payment reference."}
    assert upstreams.requests == []


def test_callback_reference_stays_inside_verify_path(client, upstreams):
    upstreams.verify_data = {"status": "abandoned"}
    client.get("/verify-payment", params={"reference": "T1.a=b_c-d"})
    paths = [r.url.path for r in upstreams.requests if r.url.host == "api.paystack.co"]
    assert paths == ["/transaction/verify/T1.a=b_c-d"]
