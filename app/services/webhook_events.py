"""
Paystack event interpretation and entitlement decisions.

Only charge.success grants anything. Everything else that parses is
acknowledged and ignored, and so are signed events we refuse to act on
(missing email, underpayment, replays): the provider retries on non-2xx, and a
retry would not change the outcome.

Example payload (simplified):
{
  "event": "charge.success",
  "data": {
    "reference": "T123456789",
    "amount": 448500,
    "currency": "NGN",
    "status": "success",
    "paid_at": "2026-10-01T10:00:00.000Z",
    "customer": {"email": "a@x.com"},
    "metadata": {"deviceId": "device-1", "plan": "monthly", "country": "NG"}
  }
}
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.core.errors import ValidationError
from app.core.pricing import PLAN_MULTIPLIERS, expected_price_usd, quantize_cents, to_major_units
from app.services import events
from app.services.billing_email import send_premium_receipt_email
from app.services.entitlements import EntitlementStore
from app.services.events import EventObserver, LoggingObserver
from app.services.exchange_rates import ExchangeRateService

logger = logging.getLogger(__name__)

CHARGE_SUCCESS = "charge.success"

# ProcessingOutcome.status values
GRANTED = "granted"
IGNORED = "ignored"
SKIPPED = "skipped"
WITHHELD = "withheld"
DUPLICATE = "duplicate"


class WebhookParseError(ValidationError):
    pass


@dataclass(frozen=True)
class WebhookEvent:
    event_type: str
    customer_email: Optional[str] = None
    amount_minor: Optional[int] = None
    currency: Optional[str] = None
    reference: Optional[str] = None
    paid_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def amount_major(self) -> Optional[Decimal]:
        if self.amount_minor is None:
            return None
        return to_major_units(self.amount_minor)

    @property
    def device_id(self) -> Optional[str]:
        return _parse_reference(self.metadata.get("deviceId")) or _parse_reference(self.metadata.get("device_id"))

    @property
    def plan(self) -> Optional[str]:
        return _text(self.metadata.get("plan"))

    @property
    def country(self) -> Optional[str]:
        return _text(self.metadata.get("country")) or _text(self.metadata.get("countryCode"))


@dataclass(frozen=True)
class ProcessingOutcome:
    status: str
    reason: str = ""
    email: Optional[str] = None
    paid_usd: Optional[Decimal] = None
    expected_usd: Optional[Decimal] = None


def _text(value: Any) -> Optional[str]:
    # Anything but a non-empty string counts as absent
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_reference(value: Any) -> Optional[str]:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _text(value)


def _parse_paid_at(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_amount(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(Decimal(str(value)))
    except (ArithmeticError, ValueError):
        return None


def event_from_transaction(event_type: str, data: Dict[str, Any]) -> WebhookEvent:
    """Build a WebhookEvent from a Paystack transaction object (webhook `data` or verify response)."""
    customer = data.get("customer") or {}
    metadata = data.get("metadata") or {}
    if isinstance(metadata, str):
        # Paystack echoes metadata back as a JSON string when it was sent as one
        try:
            metadata = json.loads(metadata)
        except ValueError:
            metadata = {}
    if not isinstance(metadata, dict):
        metadata = {}
    currency = _text(data.get("currency"))

    return WebhookEvent(
        event_type=event_type,
        customer_email=_text(customer.get("email")) if isinstance(customer, dict) else None,
        amount_minor=_parse_amount(data.get("amount")),
        currency=currency.upper() if currency else None,
        reference=_parse_reference(data.get("reference")),
        paid_at=_parse_paid_at(data.get("paid_at") or data.get("paidAt")),
        metadata=metadata,
    )


def interpret(raw_body: bytes) -> WebhookEvent:
    """Parse a verified webhook body. Raises WebhookParseError for anything that is not an event object."""
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise WebhookParseError("Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise WebhookParseError("Webhook body must be a JSON object")

    event_type = payload.get("event")
    if not event_type or not isinstance(event_type, str):
        raise WebhookParseError("Webhook body has no event field")

    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    return event_from_transaction(event_type, data)


class PaymentProcessor:
    """Decides whether a payment event grants premium, and grants it."""

    def __init__(
        self,
        store: EntitlementStore,
        rates: ExchangeRateService,
        settings: Settings,
        observer: EventObserver | None = None,
    ):
        self.store = store
        self.rates = rates
        self.settings = settings
        self.observer = observer or LoggingObserver()

    async def process(self, event: WebhookEvent) -> ProcessingOutcome:
        if event.event_type != CHARGE_SUCCESS:
            self.observer.emit(events.WEBHOOK_IGNORED, event_type=event.event_type)
            return ProcessingOutcome(IGNORED, reason=f"unhandled event {event.event_type}")

        email = event.customer_email
        if not email:
            return self._skip(event, "charge.success without customer email")

        device_id = event.device_id
        if self.settings.device_binding_enabled and not device_id:
            return self._skip(event, f"charge.success for {email} without metadata.deviceId", email)

        if self.store.has_processed(event.reference):
            logger.info("[Paystack webhook] reference %s already processed; ignoring replay", event.reference)
            return ProcessingOutcome(DUPLICATE, reason="reference already processed", email=email)

        paid_usd = expected_usd = None
        if self.settings.multi_currency_pricing:
            if event.amount_minor is None:
                return self._skip(event, f"charge.success for {email} without amount", email)
            paid_usd = await self.paid_in_reference_currency(event)
            expected_usd = expected_price_usd(event.country, self._plan_or_default(event.plan))
            if paid_usd < expected_usd:
                logger.warning(
                    "[Paystack webhook] underpayment by %s: paid %s %s (~%s %s), expected %s %s",
                    email, event.amount_major, event.currency, paid_usd,
                    self.settings.reference_currency, expected_usd, self.settings.reference_currency,
                )
                self.store.record_payment(
                    event.reference, email, event.amount_major, event.currency or "",
                    status=WITHHELD, device_id=device_id, paid_at=event.paid_at,
                )
                self.observer.emit(
                    events.ENTITLEMENT_WITHHELD,
                    email=email, paid_usd=paid_usd, expected_usd=expected_usd,
                    reference=event.reference,
                )
                return ProcessingOutcome(
                    WITHHELD, reason="amount below price", email=email,
                    paid_usd=paid_usd, expected_usd=expected_usd,
                )

        self.store.grant(email, device_id)
        if event.amount_minor is not None:
            self.store.record_payment(
                event.reference, email, event.amount_major,
                event.currency or self.settings.default_currency,
                status=GRANTED, device_id=device_id, paid_at=event.paid_at,
            )
            send_premium_receipt_email(
                self.settings,
                to_email=email,
                amount=event.amount_major,
                currency=event.currency or self.settings.default_currency,
                paid_at=event.paid_at,
            )
        return ProcessingOutcome(GRANTED, email=email, paid_usd=paid_usd, expected_usd=expected_usd)

    async def paid_in_reference_currency(self, event: WebhookEvent) -> Decimal:
        currency = event.currency or self.settings.default_currency
        rate = await self.rates.get_rate(currency)
        return quantize_cents(event.amount_major / rate)

    @staticmethod
    def _plan_or_default(plan: Any) -> Optional[str]:
        # A plan name we no longer sell falls back to the monthly floor
        if isinstance(plan, str) and plan.lower() in PLAN_MULTIPLIERS:
            return plan
        return None

    def _skip(self, event: WebhookEvent, reason: str, email: str | None = None) -> ProcessingOutcome:
        logger.warning("[Paystack webhook] %s (reference=%s); not granting", reason, event.reference)
        return ProcessingOutcome(SKIPPED, reason=reason, email=email)
