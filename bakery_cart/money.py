from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal]

CURRENCY_LABEL = "Birr"


def round_amount(amount: Number) -> int:
    """Round to whole currency units, half away from zero."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(amount: Number) -> str:
    # Whole amounts print without decimals, fractional ones keep up to two.
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if value == value.to_integral_value():
        text = f"{value:,.0f}"
    else:
        text = f"{value:,.2f}".rstrip("0")
    return f"{CURRENCY_LABEL} {text}"


def format_delivery_fee(amount: Number) -> str:
    return "FREE" if amount == 0 else format_currency(amount)
