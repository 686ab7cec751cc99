"""
Runtime configuration.

Values come from the environment (a local .env is loaded first) and are frozen
into a Settings instance at import time. Components receive the Settings object
explicitly instead of reading os.environ themselves.
"""
import os
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

# Hardcoded USD -> currency rates used when the exchange-rate API is unreachable.
# These are approximations, not live prices.
DEFAULT_FALLBACK_USD_RATES: Dict[str, Decimal] = {
    "NGN": Decimal("1500"),
    "GHS": Decimal("15"),
    "KES": Decimal("130"),
    "ZAR": Decimal("18.5"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "USD": Decimal("1"),
}

DEVICE_BINDING_POLICIES = ("overwrite", "reject")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_rates(raw: str) -> Dict[str, Decimal]:
    """Parse "NGN=1500,GHS=15" into a rate map layered over the defaults."""
    rates = dict(DEFAULT_FALLBACK_USD_RATES)
    for part in raw.split(","):
        if "=" not in part:
            continue
        code, value = part.split("=", 1)
        rates[code.strip().upper()] = Decimal(value.strip())
    return rates


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./jephshield.db"

    # Paystack uses the secret key both as API bearer token and webhook signing key
    paystack_secret_key: str = ""
    paystack_webhook_secret: str = ""
    paystack_base_url: str = "https://api.paystack.co"
    callback_url: str = ""

    default_currency: str = "NGN"
    default_country: str = "NG"
    reference_currency: str = "USD"
    multi_currency_pricing: bool = True
    fallback_usd_rates: Dict[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_USD_RATES)
    )
    exchange_rate_api_url: str = "https://open.er-api.com/v6/latest/USD"
    exchange_rate_cache_seconds: int = 600
    geolocation_api_url: str = "http://ip-api.com/json/{ip}"
    http_timeout_seconds: float = 10.0

    device_binding_enabled: bool = True
    device_binding_policy: str = "overwrite"

    trial_duration_days: int = 3
    trial_server_ttl_hours: int = 72

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    resend_api_key: str = ""
    billing_from_email: str = "Jephshield VPN <billing@jephshield.com>"
    app_name: str = "Jephshield VPN"
    public_dir: str = "public"

    @property
    def webhook_secret(self) -> str:
        return self.paystack_webhook_secret or self.paystack_secret_key

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "Settings":
        policy = os.getenv("DEVICE_BINDING_POLICY", "overwrite").strip().lower()
        if policy not in DEVICE_BINDING_POLICIES:
            raise ValueError(
                f"DEVICE_BINDING_POLICY must be one of {DEVICE_BINDING_POLICIES}, got {policy!r}"
            )
        database_url = os.getenv("DATABASE_URL", cls.database_url)
        # Normalize postgres:// -> postgresql:// for SQLAlchemy
        if database_url.startswith("postgres://"):
            database_url = "postgresql://" + database_url[10:]
        return cls(
            database_url=database_url,
            paystack_secret_key=os.getenv("PAYSTACK_SECRET_KEY", "").strip(),
            paystack_webhook_secret=os.getenv("PAYSTACK_WEBHOOK_SECRET", "").strip(),
            paystack_base_url=os.getenv("PAYSTACK_BASE_URL", cls.paystack_base_url).rstrip("/"),
            callback_url=os.getenv("CALLBACK_URL", ""),
            default_currency=os.getenv("DEFAULT_CURRENCY", cls.default_currency).upper(),
            default_country=os.getenv("DEFAULT_COUNTRY", cls.default_country).upper(),
            reference_currency=os.getenv("REFERENCE_CURRENCY", cls.reference_currency).upper(),
            multi_currency_pricing=_env_bool("MULTI_CURRENCY_PRICING", True),
            fallback_usd_rates=_parse_rates(os.getenv("FALLBACK_USD_RATES", "")),
            exchange_rate_api_url=os.getenv("EXCHANGE_RATE_API_URL", cls.exchange_rate_api_url),
            exchange_rate_cache_seconds=int(os.getenv("EXCHANGE_RATE_CACHE_SECONDS", "600")),
            geolocation_api_url=os.getenv("GEOLOCATION_API_URL", cls.geolocation_api_url),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            device_binding_enabled=_env_bool("DEVICE_BINDING_ENABLED", True),
            device_binding_policy=policy,
            trial_duration_days=int(os.getenv("TRIAL_DURATION_DAYS", "3")),
            trial_server_ttl_hours=int(os.getenv("TRIAL_SERVER_TTL_HOURS", "72")),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
            resend_api_key=os.getenv("RESEND_API_KEY", "").strip(),
            billing_from_email=os.getenv("BILLING_FROM_EMAIL", cls.billing_from_email),
            app_name=os.getenv("APP_NAME", cls.app_name),
            public_dir=os.getenv("PUBLIC_DIR", cls.public_dir),
        )


settings = Settings.from_env()


def get_settings() -> Settings:
    """FastAPI dependency; tests override it with their own Settings."""
    return settings
