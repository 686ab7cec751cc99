from datetime import datetime
from pathlib import Path

from app.core.config import get_settings
from app.main import app
from app.models import PremiumAccount, Trial, TrialServer, VpnServer
from import_json_stores import import_premium, import_trial_servers, import_trials, import_vpn_servers

PUBLIC_DIR = Path(__file__).resolve().parent.parent / "public"


def test_root_reports_running(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == "Jephshield VPN backend is running!"


def test_payment_page_is_served(client, settings):
    app.dependency_overrides[get_settings] = lambda: settings.with_overrides(public_dir=str(PUBLIC_DIR))
    r = client.get("/subscribe")
    assert r.status_code == 200
    assert "text/html" in r.headers["content-type"]


def test_missing_page_is_404(client, settings, tmp_path):
    app.dependency_overrides[get_settings] = lambda: settings.with_overrides(public_dir=str(tmp_path))
    assert client.get("/admin").status_code == 404


def test_legacy_payment_url_redirects(client):
    r = client.get("/payment.html", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/subscribe"


def test_success_page(client):
    assert "Thank you" in client.get("/success").text


def test_legacy_stores_import_once(db, tmp_path):
    premium = ["a@x.com", "b@x.com"]
    devices = {"a@x.com": "d1"}
    trials = {"d9": {"email": "t@x.com", "startTime": 1759320000000}}
    servers = [{"ip": "10.0.0.1", "username": "u", "password": "p", "capacity": 2,
                "currentUsers": 5, "createdAt": "2026-10-01T12:00:00Z"}]
    vpn = [{"id": 7, "country": "Nigeria", "location": "Lagos"}, {"id": 9, "country": "Ghana", "location": "Accra"}]

    assert import_premium(db, premium, devices) == 2
    assert import_trials(db, trials) == 1
    assert import_trial_servers(db, servers) == 1
    assert import_vpn_servers(db, vpn) == 2

    assert import_premium(db, premium, devices) == 0
    assert import_trials(db, trials) == 0
    assert import_trial_servers(db, servers) == 0
    assert import_vpn_servers(db, vpn) == 0

    account = db.query(PremiumAccount).filter(PremiumAccount.email == "a@x.com").one()
    assert account.bound_device_id == "d1"
    trial = db.query(Trial).one()
    assert trial.started_at == datetime(2025, 10, 1, 12, 0, 0)
    server = db.query(TrialServer).one()
    assert server.current_users == 2
    assert [s.id for s in db.query(VpnServer).order_by(VpnServer.id)] == [1, 2]
