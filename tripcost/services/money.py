"""Money / rounding helpers.

Centralized so forecast, transfer and settlement use identical rounding
semantics.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence


def round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def split_evenly(total: float, ways: int) -> List[float]:
    """Split ``total`` into ``ways`` 2-dp parts that sum exactly to round2(total).

    Leftover cents go to the first parts, one cent each.
    """
    if ways <= 0:
        return []
    cents = int(Decimal(str(round2(total))) * 100)
    base, leftover = divmod(abs(cents), ways)
    sign = -1 if cents < 0 else 1
    parts = [base + (1 if i < leftover else 0) for i in range(ways)]
    return [sign * p / 100 for p in parts]


def total2(values: Sequence[float]) -> float:
    return round2(sum(values))
