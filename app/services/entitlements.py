"""
Premium entitlement store.

Owns the premium_accounts and payments tables; nothing else writes them.
Each mutation commits before returning, so a read right after a write sees it.
Writers in this process go through one lock, and the unique email column turns
a lost insert race (another process) into an update.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.models.payment import Payment
from app.models.premium_account import PremiumAccount
from app.services import events
from app.services.events import EventObserver, LoggingObserver

logger = logging.getLogger(__name__)

_write_lock = threading.Lock()


@dataclass(frozen=True)
class GrantResult:
    email: str
    created: bool
    bound_device_id: Optional[str]
    binding_rejected: bool = False


class EntitlementStore:
    def __init__(self, db: Session, settings: Settings, observer: EventObserver | None = None):
        self.db = db
        self.settings = settings
        self.observer = observer or LoggingObserver()

    def get(self, email: str) -> Optional[PremiumAccount]:
        return self.db.query(PremiumAccount).filter(PremiumAccount.email == email).first()

    def grant(self, email: str, device_id: str | None = None) -> GrantResult:
        """Mark email premium. Re-granting is a no-op for the flag; device binding follows the policy."""
        with _write_lock:
            try:
                result = self._grant(email, device_id)
            except IntegrityError:
                # Another writer inserted the same email first; apply ours as an update
                self.db.rollback()
                result = self._grant(email, device_id)

        if result.binding_rejected:
            self.observer.emit(
                events.ENTITLEMENT_BINDING_REJECTED,
                email=email,
                device_id=device_id,
                bound_device_id=result.bound_device_id,
            )
        self.observer.emit(
            events.ENTITLEMENT_GRANTED,
            email=email,
            device_id=result.bound_device_id,
            created=result.created,
        )
        return result

    def _grant(self, email: str, device_id: str | None) -> GrantResult:
        account = self.get(email)
        created = account is None
        binding_rejected = False

        if account is None:
            account = PremiumAccount(email=email, is_premium=True, bound_device_id=device_id)
            self.db.add(account)
        else:
            account.is_premium = True
            if device_id:
                already_bound = account.bound_device_id and account.bound_device_id != device_id
                if already_bound and self.settings.device_binding_policy == "reject":
                    binding_rejected = True
                else:
                    # Latest successful payment wins the device binding
                    account.bound_device_id = device_id

        self.db.commit()
        return GrantResult(
            email=email,
            created=created,
            bound_device_id=account.bound_device_id,
            binding_rejected=binding_rejected,
        )

    def is_premium(self, email: str, device_id: str | None = None) -> bool:
        account = self.get(email)
        if account is None or not account.is_premium:
            return False
        if not self.settings.device_binding_enabled:
            return True
        return bool(device_id) and account.bound_device_id == device_id

    def bound_device(self, email: str) -> Optional[str]:
        account = self.get(email)
        return account.bound_device_id if account else None

    def has_processed(self, reference: str | None) -> bool:
        if not reference:
            return False
        return (
            self.db.query(Payment)
            .filter(Payment.reference == reference, Payment.status == "granted")
            .first()
            is not None
        )

    def record_payment(
        self,
        reference: str | None,
        email: str,
        amount: Decimal,
        currency: str,
        status: str,
        device_id: str | None = None,
        paid_at: datetime | None = None,
    ) -> Optional[Payment]:
        """Upsert the payment row for a provider reference. Payments without a reference are not recorded."""
        if not reference:
            return None
        with _write_lock:
            payment = self.db.query(Payment).filter(Payment.reference == reference).first()
            if payment is None:
                payment = Payment(reference=reference, email=email)
                self.db.add(payment)
            payment.email = email
            payment.device_id = device_id
            payment.amount = amount
            payment.currency = currency
            payment.status = status
            payment.paid_at = paid_at or payment.paid_at
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning("Payment %s was recorded concurrently; keeping existing row", reference)
                return self.db.query(Payment).filter(Payment.reference == reference).first()
        return payment
