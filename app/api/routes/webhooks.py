"""
Paystack payment notifications.

POST /verify-payment  server-to-server webhook (signed, raw body)
GET  /verify-payment  browser redirect after checkout (?reference=...)
"""
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError, ValidationError
from app.dependencies.services import get_payment_processor, get_paystack_client
from app.services import events
from app.services.events import EventObserver, get_observer
from app.services.paystack_client import PaystackClient
from app.services.signature import signature_from_headers, verify_signature
from app.services.webhook_events import (
    CHARGE_SUCCESS,
    GRANTED,
    DUPLICATE,
    PaymentProcessor,
    WebhookParseError,
    event_from_transaction,
    interpret,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/verify-payment")
async def paystack_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    processor: PaymentProcessor = Depends(get_payment_processor),
    observer: EventObserver = Depends(get_observer),
):
    """
    Paystack webhook. Register this URL in the Paystack dashboard:
    https://your-backend.com/verify-payment

    Answers 401 only for a bad signature. Any signed request is acknowledged
    with 200 so Paystack does not keep redelivering it.
    """
    # Signature is over the bytes as received; read them before any parsing
    payload = await request.body()
    signature = signature_from_headers(request.headers)

    if not settings.webhook_secret:
        logger.error("[Paystack webhook] PAYSTACK_SECRET_KEY is not set; rejecting webhook")
    if not verify_signature(payload, signature, settings.webhook_secret):
        observer.emit(events.WEBHOOK_REJECTED, has_signature=bool(signature), size=len(payload))
        raise AuthenticationError("Invalid webhook signature")

    try:
        event = interpret(payload)
    except WebhookParseError as e:
        logger.warning("[Paystack webhook] signed but unusable payload: %s", e.message)
        return {"status": "success"}

    observer.emit(events.WEBHOOK_VERIFIED, event_type=event.event_type, reference=event.reference)
    outcome = await processor.process(event)
    logger.info(
        "[Paystack webhook] event=%s reference=%s outcome=%s %s",
        event.event_type, event.reference, outcome.status, outcome.reason,
    )
    return {"status": "success"}


@router.get("/verify-payment", response_class=PlainTextResponse)
async def verify_payment_callback(
    reference: str = Query(None),
    paystack: PaystackClient = Depends(get_paystack_client),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Callback URL Paystack redirects the customer to. Verifies the transaction server-side."""
    logger.info("VERIFY CALLBACK HIT - reference: %s", reference)
    if not reference:
        raise ValidationError("Missing payment reference.")

    data = await paystack.verify_transaction(reference)
    status_val = data.get("status")
    if status_val != "success":
        return f"Payment not successful: {status_val}"

    data.setdefault("reference", reference)
    outcome = await processor.process(event_from_transaction(CHARGE_SUCCESS, data))
    if outcome.status in (GRANTED, DUPLICATE):
        return "Payment verified successfully. Access granted."
    return f"Payment received but access was not granted: {outcome.reason}"
