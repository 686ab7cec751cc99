"""
Checkout initialization.

Two request shapes are accepted:
  * plan checkout: {email, plan, countryCode?, currency?, deviceId?}
    charge = base price for the country x plan multiplier x USD rate of the
    charge currency, rounded to minor units. The country falls back to IP
    geolocation, then to DEFAULT_COUNTRY.
  * fixed amount: {email, amount, currency?} as sent by the legacy payment
    page; amount is in major units.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.core.errors import ProviderError, ValidationError
from app.core.pricing import (
    DEFAULT_PLAN,
    base_price_usd,
    currency_for_country,
    plan_multiplier,
    to_minor_units,
)
from app.schemas.billing import SubscribeRequest
from app.services import events
from app.services.events import EventObserver, LoggingObserver
from app.services.exchange_rates import ExchangeRateService
from app.services.geolocation import GeolocationService
from app.services.paystack_client import PaystackClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeQuote:
    amount_minor: int
    currency: str
    country: Optional[str]
    plan: Optional[str]


@dataclass(frozen=True)
class CheckoutResult:
    authorization_url: str
    reference: Optional[str]
    amount_minor: int
    currency: str


class CheckoutService:
    def __init__(
        self,
        settings: Settings,
        paystack: PaystackClient,
        rates: ExchangeRateService,
        geo: GeolocationService,
        observer: EventObserver | None = None,
    ):
        self.settings = settings
        self.paystack = paystack
        self.rates = rates
        self.geo = geo
        self.observer = observer or LoggingObserver()

    async def quote(self, request: SubscribeRequest, client_ip: str | None = None) -> ChargeQuote:
        if request.plan is None and request.amount is None:
            raise ValidationError("Missing email or amount")

        if request.plan is None:
            currency = (request.currency or self.settings.default_currency).upper()
            return ChargeQuote(
                amount_minor=to_minor_units(request.amount),
                currency=currency,
                country=request.country_code.upper() if request.country_code else None,
                plan=None,
            )

        multiplier = plan_multiplier(request.plan)
        if request.country_code:
            country = request.country_code.upper()
        else:
            country = await self.geo.resolve_country(client_ip)
        currency = (
            request.currency or currency_for_country(country, self.settings.default_currency)
        ).upper()
        rate = await self.rates.get_rate(currency)
        price_usd = base_price_usd(country) * multiplier
        return ChargeQuote(
            amount_minor=to_minor_units(price_usd * rate),
            currency=currency,
            country=country,
            plan=request.plan.lower(),
        )

    async def initialize(self, request: SubscribeRequest, client_ip: str | None = None) -> CheckoutResult:
        if not request.email or "@" not in request.email:
            raise ValidationError("A valid email is required")

        quote = await self.quote(request, client_ip)
        metadata: Dict[str, Any] = {"plan": quote.plan or DEFAULT_PLAN}
        if request.device_id:
            metadata["deviceId"] = request.device_id
        if quote.country:
            metadata["country"] = quote.country

        try:
            data = await self.paystack.initialize_transaction(
                email=request.email,
                amount_minor=quote.amount_minor,
                currency=quote.currency,
                metadata=metadata,
            )
        except ProviderError:
            self.observer.emit(
                events.CHECKOUT_FAILED,
                email=request.email, amount=quote.amount_minor, currency=quote.currency,
            )
            raise

        self.observer.emit(
            events.CHECKOUT_INITIALIZED,
            email=request.email, amount=quote.amount_minor, currency=quote.currency,
            reference=data.get("reference"),
        )
        logger.info(
            "Initialized payment for %s (%s %s), redirecting to: %s",
            request.email, quote.amount_minor, quote.currency, data["authorization_url"],
        )
        return CheckoutResult(
            authorization_url=data["authorization_url"],
            reference=data.get("reference"),
            amount_minor=quote.amount_minor,
            currency=quote.currency,
        )
