# utils/money.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Number) -> Decimal:
    """Quantize a value to currency precision (2 places, half-up)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() keeps floats like 0.1 from dragging binary noise along
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Number, discount_percentage: Number = 0) -> Decimal:
    """quantity x unit_price x (1 - discount/100), rounded once at the end."""
    gross = Decimal(quantity) * to_money(unit_price)
    discount = Decimal(str(discount_percentage or 0))
    return to_money(gross * (HUNDRED - discount) / HUNDRED)


def money_sum(values: Iterable[Number]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_money(v)
    return total
