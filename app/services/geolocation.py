import ipaddress
import logging
from typing import Optional

import httpx

from app.core.config import Settings
from app.core.errors import StaleDataError

logger = logging.getLogger(__name__)


def _is_public_ip(ip: str | None) -> bool:
    if not ip:
        return False
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (address.is_private or address.is_loopback or address.is_reserved or address.is_link_local)


class GeolocationService:
    """Best-effort IP -> country lookup. Any failure resolves to the default country."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    async def resolve_country(self, ip: str | None) -> str:
        if not _is_public_ip(ip):
            return self.settings.default_country
        try:
            return await self._lookup(ip)
        except StaleDataError as e:
            logger.warning("[Geo] %s; defaulting to %s", e.message, self.settings.default_country)
            return self.settings.default_country

    async def _lookup(self, ip: str) -> str:
        url = self.settings.geolocation_api_url.format(ip=ip)
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds, transport=self.transport
            ) as client:
                r = await client.get(url)
        except httpx.TimeoutException as e:
            raise StaleDataError(f"Geolocation lookup timed out for {ip}: {e}")
        except httpx.RequestError as e:
            raise StaleDataError(f"Geolocation lookup failed for {ip}: {e}")

        if r.status_code != 200:
            raise StaleDataError(f"Geolocation API returned {r.status_code}")
        try:
            data = r.json()
        except ValueError:
            raise StaleDataError("Geolocation API returned invalid JSON")

        # ip-api.com uses countryCode, ipapi.co uses country_code
        country = data.get("countryCode") or data.get("country_code")
        if not country or data.get("status") == "fail":
            raise StaleDataError(f"Geolocation API could not resolve {ip}")
        return str(country).upper()
