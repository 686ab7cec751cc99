"""
One-off import of the legacy JSON stores into the database.

Reads, from the given directory (default: current directory), whichever of
these exist:
  premium.json          ["a@x.com", ...]
  premium-devices.json  {"a@x.com": "device-id", ...}
  trials.json           {"device-id": {"email": "...", "startTime": <ms epoch | ISO>}, ...}
  server-usage.json     [{"ip", "username", "password", "location", "tags",
                          "capacity", "currentUsers", "createdAt"}, ...]
  vpnServers.json       [{"id", "country", "location", "ip", "port", "username", "password"}, ...]

Safe to run more than once: existing rows are matched and left in place.
"""
import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models import PremiumAccount, Trial, TrialServer, VpnServer


def _load(path: Path):
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _parse_time(value):
    """JS Date.now() milliseconds or an ISO string -> naive UTC datetime."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def import_premium(db, emails, devices) -> int:
    devices = devices or {}
    count = 0
    for email in set(emails or []) | set(devices):
        account = db.query(PremiumAccount).filter(PremiumAccount.email == email).first()
        if account is None:
            db.add(PremiumAccount(email=email, is_premium=True, bound_device_id=devices.get(email)))
            count += 1
        elif devices.get(email) and not account.bound_device_id:
            account.bound_device_id = devices[email]
    db.commit()
    return count


def import_trials(db, trials) -> int:
    count = 0
    for device_id, record in (trials or {}).items():
        if db.query(Trial).filter(Trial.device_id == device_id).first():
            continue
        started = _parse_time(record.get("startTime") or record.get("startTimestamp"))
        if started is None:
            print(f"⚠️ Skip trial for {device_id}: no start time")
            continue
        db.add(Trial(device_id=device_id, email=record.get("email", ""), started_at=started))
        count += 1
    db.commit()
    return count


def import_trial_servers(db, servers) -> int:
    count = 0
    for entry in servers or []:
        exists = (
            db.query(TrialServer)
            .filter(TrialServer.ip == entry["ip"], TrialServer.username == entry["username"])
            .first()
        )
        if exists:
            continue
        capacity = int(entry.get("capacity", 10))
        db.add(
            TrialServer(
                ip=entry["ip"],
                username=entry["username"],
                password=entry["password"],
                location=entry.get("location"),
                tags=list(entry.get("tags") or []),
                capacity=capacity,
                current_users=min(int(entry.get("currentUsers", 0)), capacity),
                created_at=_parse_time(entry.get("createdAt")) or datetime.now(timezone.utc).replace(tzinfo=None),
            )
        )
        count += 1
    db.commit()
    return count


def import_vpn_servers(db, servers) -> int:
    if db.query(VpnServer).count():
        return 0
    for position, entry in enumerate(servers or [], start=1):
        db.add(
            VpnServer(
                id=position,
                country=entry["country"],
                location=entry["location"],
                ip=entry.get("ip"),
                port=entry.get("port"),
                username=entry.get("username"),
                password=entry.get("password"),
            )
        )
    db.commit()
    return len(servers or [])


def run(directory: Path) -> dict:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        return {
            "premium": import_premium(
                db, _load(directory / "premium.json"), _load(directory / "premium-devices.json")
            ),
            "trials": import_trials(db, _load(directory / "trials.json")),
            "trial_servers": import_trial_servers(db, _load(directory / "server-usage.json")),
            "vpn_servers": import_vpn_servers(db, _load(directory / "vpnServers.json")),
        }
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import legacy JSON stores")
    parser.add_argument("directory", nargs="?", default=".")
    args = parser.parse_args()
    counts = run(Path(args.directory))
    for name, count in counts.items():
        print(f"✅ {name}: {count} imported")
