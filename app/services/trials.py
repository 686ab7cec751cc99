"""
Free trial bookkeeping.

Per device: no trial -> active (first start) -> expired (TRIAL_DURATION_DAYS
after the start, computed on read). There is no way back to "no trial".
"""
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import TrialDeniedError
from app.models.trial import Trial
from app.services import events
from app.services.entitlements import EntitlementStore
from app.services.events import EventObserver, LoggingObserver
from app.services.server_pool import ServerPool

NO_TRIAL = "none"
ACTIVE = "active"
EXPIRED = "expired"

_trial_lock = threading.Lock()


@dataclass(frozen=True)
class TrialStatus:
    state: str
    started_at: Optional[datetime] = None
    expires_in: int = 0  # whole seconds left, 0 unless active

    @property
    def active(self) -> bool:
        return self.state == ACTIVE


class TrialService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        entitlements: EntitlementStore,
        pool: ServerPool,
        observer: EventObserver | None = None,
    ):
        self.db = db
        self.settings = settings
        self.entitlements = entitlements
        self.pool = pool
        self.observer = observer or LoggingObserver()

    @property
    def duration(self) -> timedelta:
        return timedelta(days=self.settings.trial_duration_days)

    def get(self, device_id: str) -> Optional[Trial]:
        return self.db.query(Trial).filter(Trial.device_id == device_id).first()

    def status_of(self, trial: Optional[Trial], now: datetime) -> TrialStatus:
        if trial is None:
            return TrialStatus(NO_TRIAL)
        elapsed = now - trial.started_at
        if elapsed < self.duration:
            remaining = self.duration - elapsed
            return TrialStatus(ACTIVE, trial.started_at, max(int(remaining.total_seconds()), 0))
        return TrialStatus(EXPIRED, trial.started_at, 0)

    def status(self, device_id: str, now: datetime) -> TrialStatus:
        return self.status_of(self.get(device_id), now)

    def start(self, device_id: str, email: str, now: datetime) -> TrialStatus:
        """Start the device's one trial. Raises TrialDeniedError when it cannot start."""
        account = self.entitlements.get(email)
        if account and account.is_premium and account.bound_device_id and account.bound_device_id != device_id:
            self._deny(device_id, email, "Premium account already used on another device", TrialStatus(NO_TRIAL))

        with _trial_lock:
            trial = self.get(device_id)
            if trial is None:
                trial = Trial(device_id=device_id, email=email, started_at=now)
                self.db.add(trial)
                try:
                    self.db.commit()
                except IntegrityError:
                    # Another request started this device's trial first
                    self.db.rollback()
                    trial = self.get(device_id)
                else:
                    status = self.status_of(trial, now)
                    self.observer.emit(
                        events.TRIAL_STARTED, device_id=device_id, email=email, expires_in=status.expires_in
                    )
                    return status

        status = self.status_of(trial, now)
        if status.active:
            self._deny(device_id, email, "Trial already active", status)

        # Expired: hand back any trial server slot the device still holds
        self.pool.release(device_id, now)
        self._deny(device_id, email, "Trial expired", status)

    def require_active(self, device_id: str, now: datetime) -> TrialStatus:
        """Trial servers are only handed to devices whose trial is running."""
        status = self.status(device_id, now)
        if status.state == NO_TRIAL:
            self._deny(device_id, None, "No active trial", status)
        if status.state == EXPIRED:
            self.pool.release(device_id, now)
            self._deny(device_id, None, "Trial expired", status)
        return status

    def _deny(self, device_id: str, email: str | None, message: str, status: TrialStatus) -> None:
        self.observer.emit(events.TRIAL_DENIED, device_id=device_id, email=email, reason=message)
        raise TrialDeniedError(
            message,
            extra={"trialActive": status.active, "expiresIn": status.expires_in},
        )
