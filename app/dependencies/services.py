"""
Service wiring for the routes.

Each service is built per request from the request's DB session, the frozen
Settings and the process-wide event observer. Tests replace get_settings,
get_clock, get_observer or get_http_transport through app.dependency_overrides.
"""
from typing import Optional

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import get_db
from app.services.checkout import CheckoutService
from app.services.entitlements import EntitlementStore
from app.services.events import EventObserver, get_observer
from app.services.exchange_rates import ExchangeRateService
from app.services.geolocation import GeolocationService
from app.services.paystack_client import PaystackClient
from app.services.server_pool import ServerPool
from app.services.trials import TrialService
from app.services.webhook_events import PaymentProcessor


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport for provider/fx/geo calls. None means real network."""
    return None


def get_entitlement_store(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    observer: EventObserver = Depends(get_observer),
) -> EntitlementStore:
    return EntitlementStore(db, settings, observer)


def get_exchange_rates(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> ExchangeRateService:
    return ExchangeRateService(settings, transport)


def get_paystack_client(
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
) -> PaystackClient:
    return PaystackClient(settings, transport)


def get_payment_processor(
    store: EntitlementStore = Depends(get_entitlement_store),
    rates: ExchangeRateService = Depends(get_exchange_rates),
    settings: Settings = Depends(get_settings),
    observer: EventObserver = Depends(get_observer),
) -> PaymentProcessor:
    return PaymentProcessor(store, rates, settings, observer)


def get_checkout_service(
    settings: Settings = Depends(get_settings),
    paystack: PaystackClient = Depends(get_paystack_client),
    rates: ExchangeRateService = Depends(get_exchange_rates),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    observer: EventObserver = Depends(get_observer),
) -> CheckoutService:
    return CheckoutService(settings, paystack, rates, GeolocationService(settings, transport), observer)


def get_server_pool(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    observer: EventObserver = Depends(get_observer),
) -> ServerPool:
    return ServerPool(db, settings, observer)


def get_trial_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    entitlements: EntitlementStore = Depends(get_entitlement_store),
    pool: ServerPool = Depends(get_server_pool),
    observer: EventObserver = Depends(get_observer),
) -> TrialService:
    return TrialService(db, settings, entitlements, pool, observer)
