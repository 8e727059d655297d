"""
tms/utils/percentages.py
Integer percentages for scores and progress

Rounding is half-up (12.5 -> 13), not Python's banker's rounding.
"""
from decimal import Decimal, ROUND_HALF_UP

QUANTIZER_0DP = Decimal("1")


def round_half_up(value) -> int:
    return int(Decimal(str(value)).quantize(QUANTIZER_0DP, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> int:
    """
    round(part / whole * 100), clamped to [0, 100].

    A zero whole yields 0. Parts larger than the whole (stale rows, data
    anomalies) clamp to 100.
    """
    if not whole or whole <= 0:
        return 0
    value = round_half_up(Decimal(part) * Decimal(100) / Decimal(whole))
    return max(0, min(100, value))
