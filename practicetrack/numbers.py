"""Rounding helpers.

Python's built-in ``round`` does banker's rounding (``round(37.5) == 38``
but ``round(36.5) == 36``).  Displayed grades, averages and the timer's
minute counts all round half away from zero, so everything goes through
:func:`round_half_up`.

Ratios are computed as :class:`~decimal.Decimal` so a value that is exactly
on a half (23 / 80 * 100 == 28.75) reaches the rounding step unchanged;
the same division in binary floats lands on 28.749999999999996.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float | int | Decimal, digits: int = 0) -> float | int:
    """Round *value* half away from zero.

    Returns an ``int`` when *digits* is 0, a ``float`` otherwise.

    >>> round_half_up(37.5)
    38
    >>> round_half_up(2.25, 1)
    2.3
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    exponent = Decimal(1).scaleb(-digits)
    rounded = value.quantize(exponent, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)


def safe_ratio(numerator: int | float, denominator: int | float, scale: int = 1) -> Decimal:
    """``numerator * scale / denominator`` in decimal arithmetic, or 0 when
    the denominator is zero."""
    if not denominator:
        return Decimal(0)
    return Decimal(str(numerator)) * scale / Decimal(str(denominator))


def percentage(part: int | float, whole: int | float) -> float:
    """*part* as a percentage of *whole*, one decimal, half up."""
    return round_half_up(safe_ratio(part, whole, 100), 1)
