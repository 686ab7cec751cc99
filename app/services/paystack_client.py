"""
Paystack REST client (transaction initialize / verify).

Docs: https://paystack.com/docs/api/transaction/
Amounts are sent and received in minor units (kobo for NGN).
Failures raise ProviderError and are never retried here: re-sending an
initialize call can open a second transaction for the same purchase.
"""
import logging
import re
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings
from app.core.errors import ProviderError, ValidationError

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = re.compile(r"[A-Za-z0-9_.=-]+")


class PaystackClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.paystack_secret_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.paystack_base_url,
            timeout=self.settings.http_timeout_seconds,
            transport=self.transport,
        )

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Returns Paystack's `data` object: authorization_url, access_code, reference."""
        if not self.settings.paystack_secret_key:
            logger.error("[Paystack] PAYSTACK_SECRET_KEY is not set; cannot initialize payment")
            raise ProviderError("Payment initialization failed")

        payload: Dict[str, Any] = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
        }
        if self.settings.callback_url:
            payload["callback_url"] = self.settings.callback_url
        if metadata:
            payload["metadata"] = metadata

        data = await self._call("POST", "/transaction/initialize", json=payload)
        if not data.get("authorization_url"):
            logger.error("[Paystack] initialize response missing authorization_url: %s", data)
            raise ProviderError("Payment initialization failed")
        return data

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """Returns Paystack's `data` object for the transaction (status, amount, currency, customer, metadata)."""
        if not REFERENCE_PATTERN.fullmatch(reference or "") or not reference.strip("."):
            raise ValidationError("Invalid payment reference.")
        return await self._call("GET", f"/transaction/verify/{reference}", failure_message="Payment verification failed")

    async def _call(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        failure_message: str = "Payment initialization failed",
    ) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                r = await client.request(method, path, json=json, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error("[Paystack] %s %s timed out: %s", method, path, e)
            raise ProviderError(failure_message)
        except httpx.RequestError as e:
            logger.error("[Paystack] %s %s request error: %s", method, path, e)
            raise ProviderError(failure_message)

        if r.status_code >= 400:
            logger.error(
                "[Paystack] %s %s returned %s: %s",
                method, path, r.status_code, r.text[:500] if r.text else "NO_BODY",
            )
            raise ProviderError(failure_message)

        try:
            body = r.json()
        except ValueError:
            logger.error("[Paystack] %s %s returned invalid JSON", method, path)
            raise ProviderError(failure_message)

        if not isinstance(body, dict) or not body.get("status"):
            logger.error("[Paystack] %s %s rejected: %s", method, path, body)
            raise ProviderError(failure_message)
        return body.get("data") or {}
