"""Minor-unit amount helpers for Stripe charges."""
from decimal import ROUND_FLOOR, Decimal

from ..exceptions import AmountTooLowError

# Currencies Stripe expects in whole units
ZERO_DECIMAL_CURRENCIES = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

# Smallest chargeable amount per settlement currency, in minor units
MINIMUM_CHARGE_AMOUNTS = {
    "usd": 50, "aed": 200, "aud": 50, "bgn": 100, "brl": 50, "cad": 50,
    "chf": 50, "czk": 1500, "dkk": 250, "eur": 50, "gbp": 30, "hkd": 400,
    "huf": 17500, "inr": 50, "jpy": 50, "mxn": 1000, "myr": 200, "nok": 300,
    "nzd": 50, "pln": 200, "ron": 200, "sek": 300, "sgd": 50, "thb": 1000,
}
DEFAULT_MINIMUM_CHARGE = 50


def _scale(currency: str) -> int:
    return 1 if currency.lower() in ZERO_DECIMAL_CURRENCIES else 100


def convert_amount(amount: int, from_currency: str, to_currency: str, rate: float) -> int:
    """Convert minor units between currencies, flooring the result."""
    # Exact decimal arithmetic on the published rate
    converted = Decimal(amount) * Decimal(str(rate)) * _scale(to_currency) / _scale(from_currency)
    return int(converted.to_integral_value(rounding=ROUND_FLOOR))


def minimum_charge(currency: str) -> int:
    return MINIMUM_CHARGE_AMOUNTS.get(currency.lower(), DEFAULT_MINIMUM_CHARGE)


def ensure_minimum_amount(amount: int, currency: str) -> None:
    minimum = minimum_charge(currency)
    if amount < minimum:
        raise AmountTooLowError(amount, minimum, currency)
