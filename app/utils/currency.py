"""Перевод цен в минимальные единицы валюты (пайсы, центы) для платёжного шлюза."""
from decimal import ROUND_HALF_UP, Decimal

# Валюты без дробной части (ISO 4217 exponent 0)
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK", "UGX"})


def minor_unit_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Decimal | int | float | str, currency: str) -> int:
    """10 INR -> 1000, 9.995 INR -> 1000 (half-up)."""
    value = Decimal(str(amount))
    factor = Decimal(10) ** minor_unit_exponent(currency)
    return int((value * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int, currency: str) -> Decimal:
    factor = Decimal(10) ** minor_unit_exponent(currency)
    return (Decimal(amount_minor) / factor).quantize(Decimal(1) / factor)
