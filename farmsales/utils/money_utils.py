"""
Decimal helpers for money and mass arithmetic.

All monetary and weight sums are carried as ``Decimal``; values are rounded
half-up to two places (money) or three places (mass) only where they are
stored or reported.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Union

CENT = Decimal("0.01")
GRAM = Decimal("0.001")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Convert a number-like value to Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal('0.1')`` rather
    than its binary expansion. ``None`` and empty strings yield ``default``.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a numeric value: {value!r}")


def quantize_money(value: Number) -> Decimal:
    """Round to the cent, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_mass(value: Number) -> Decimal:
    """Round to the gram, half-up."""
    return to_decimal(value).quantize(GRAM, rounding=ROUND_HALF_UP)


def format_money(value: Number) -> str:
    """Two-decimal string with thousands separators, e.g. ``2,360.00``."""
    return f"{quantize_money(value):,.2f}"
