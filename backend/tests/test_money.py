from decimal import Decimal

import pytest

from utils.money import line_total, money_sum, to_money


@pytest.mark.parametrize(
    "value,expected",
    [
        ("0.005", "0.01"),
        ("0.004", "0.00"),
        ("2.675", "2.68"),
        (0.1, "0.10"),
        (None, "0.00"),
        (7, "7.00"),
    ],
)
def test_to_money_rounds_half_up(value, expected):
    assert to_money(value) == Decimal(expected)


def test_line_total_without_discount():
    assert line_total(3, Decimal("19.99")) == Decimal("59.97")


def test_line_total_rounds_once_after_discount():
    # 3 x 0.35 = 1.05, half of it is 0.525
    assert line_total(3, "0.35", "50") == Decimal("0.53")
    assert line_total(1, "19.99", "15") == Decimal("16.99")


def test_line_total_full_discount_is_zero():
    assert line_total(4, "12.50", "100") == Decimal("0.00")


def test_money_sum_is_exact():
    values = [Decimal("0.10")] * 10
    assert money_sum(values) == Decimal("1.00")
    assert money_sum([]) == Decimal("0.00")
