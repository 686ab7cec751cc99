"""
USD exchange rates for localized pricing.

Rates come from a public API with a short in-process cache. When the API is
slow, down or missing the currency, the hardcoded fallback rate from Settings is
used instead. The fallback is an approximation and is logged as such.
"""
import logging
import time
from decimal import Decimal
from typing import Dict, Optional, Tuple

import httpx

from app.core.config import Settings
from app.core.errors import StaleDataError

logger = logging.getLogger(__name__)

# currency -> (rate, fetched_at). Only successful lookups are cached.
_RATE_CACHE: Dict[str, Tuple[Decimal, float]] = {}


def clear_rate_cache() -> None:
    _RATE_CACHE.clear()


class ExchangeRateService:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    async def get_rate(self, currency: str) -> Decimal:
        """Units of `currency` per one unit of the reference currency (USD)."""
        currency = currency.upper()
        if currency == self.settings.reference_currency:
            return Decimal("1")

        cached = _RATE_CACHE.get(currency)
        if cached and time.time() - cached[1] < self.settings.exchange_rate_cache_seconds:
            return cached[0]

        try:
            rate = await self._fetch_rate(currency)
        except StaleDataError as e:
            fallback = self.fallback_rate(currency)
            logger.warning(
                "[FX] %s; using fallback rate %s %s per %s",
                e.message, fallback, currency, self.settings.reference_currency,
            )
            return fallback

        _RATE_CACHE[currency] = (rate, time.time())
        return rate

    def fallback_rate(self, currency: str) -> Decimal:
        rate = self.settings.fallback_usd_rates.get(currency.upper())
        if rate is None:
            logger.error("[FX] No fallback rate for %s; treating it as 1:1 with USD", currency)
            return Decimal("1")
        return rate

    async def _fetch_rate(self, currency: str) -> Decimal:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds, transport=self.transport
            ) as client:
                r = await client.get(self.settings.exchange_rate_api_url)
        except httpx.TimeoutException as e:
            raise StaleDataError(f"Exchange-rate lookup timed out: {e}")
        except httpx.RequestError as e:
            raise StaleDataError(f"Exchange-rate lookup failed: {e}")

        if r.status_code != 200:
            raise StaleDataError(f"Exchange-rate API returned {r.status_code}")

        try:
            rates = r.json().get("rates") or {}
            value = rates[currency]
            rate = Decimal(str(value))
        except (ValueError, KeyError, AttributeError, ArithmeticError):
            raise StaleDataError(f"Exchange-rate API has no usable rate for {currency}")

        if rate <= 0:
            raise StaleDataError(f"Exchange-rate API returned non-positive rate for {currency}")
        return rate
