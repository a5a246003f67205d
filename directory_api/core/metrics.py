"""
Shared rounding and ratio helpers for analytics and inquiry statistics

All rounding is half-up, matching fixed-decimal formatting rather than
Python's banker's rounding.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number, places: int) -> float:
    """Round ``value`` half-up to ``places`` decimals"""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number, places: int = 2) -> float:
    """``part / whole * 100``; zero when ``whole`` is zero"""
    if not whole:
        return 0.0
    return round_half_up(Decimal(str(part)) / Decimal(str(whole)) * 100, places)


def growth_percentage(current: Number, previous: Number) -> float:
    """
    Period-over-period growth, one decimal.

    A zero previous period yields 100 when anything happened in the current
    period and 0 otherwise.
    """
    if not previous:
        return 100.0 if current > 0 else 0.0
    change = (Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous)) * 100
    return round_half_up(change, 1)


def average(total: Number, count: int, places: int = 1) -> float:
    if not count:
        return 0.0
    return round_half_up(Decimal(str(total)) / Decimal(count), places)
