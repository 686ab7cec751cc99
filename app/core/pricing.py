from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from app.core.errors import ValidationError

# Monthly base price per country, in USD
DEFAULT_BASE_PRICE_USD = Decimal("2.99")
BASE_PRICES_USD: Dict[str, Decimal] = {
    "NG": Decimal("2.99"),
    "GH": Decimal("2.99"),
    "KE": Decimal("2.99"),
    "ZA": Decimal("3.49"),
    "US": Decimal("4.99"),
    "GB": Decimal("4.99"),
    "DE": Decimal("4.99"),
    "FR": Decimal("4.99"),
    "CA": Decimal("4.99"),
}

# Plan length in months; the charge is base price x multiplier
PLAN_MULTIPLIERS: Dict[str, int] = {
    "monthly": 1,
    "quarterly": 3,
    "biannual": 6,
    "yearly": 12,
}
DEFAULT_PLAN = "monthly"

COUNTRY_CURRENCIES: Dict[str, str] = {
    "NG": "NGN",
    "GH": "GHS",
    "KE": "KES",
    "ZA": "ZAR",
    "US": "USD",
    "GB": "GBP",
    "DE": "EUR",
    "FR": "EUR",
    "CA": "USD",
}


def base_price_usd(country_code: str | None) -> Decimal:
    """Get the monthly USD price for a country, falling back to the default price."""
    if not country_code:
        return DEFAULT_BASE_PRICE_USD
    return BASE_PRICES_USD.get(country_code.upper(), DEFAULT_BASE_PRICE_USD)


def plan_multiplier(plan: str | None) -> int:
    if not plan:
        return PLAN_MULTIPLIERS[DEFAULT_PLAN]
    try:
        return PLAN_MULTIPLIERS[plan.lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown plan '{plan}'. Choose one of: {', '.join(PLAN_MULTIPLIERS)}"
        )


def currency_for_country(country_code: str | None, default: str) -> str:
    if not country_code:
        return default
    return COUNTRY_CURRENCIES.get(country_code.upper(), default)


def expected_price_usd(country_code: str | None, plan: str | None) -> Decimal:
    return base_price_usd(country_code) * plan_multiplier(plan)


def to_minor_units(amount_major: Decimal) -> int:
    """Convert a major-unit amount (naira, dollars) to the provider's integer minor units."""
    return int((Decimal(amount_major) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int | str | Decimal) -> Decimal:
    # Provider amounts are minor units (kobo, cents). Keep exact decimals, never float.
    return (Decimal(str(amount_minor)) / 100).quantize(Decimal("0.01"))


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
