from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict

from tripcost.core.errors import RateUnavailable

"""Currency conversion against a base-anchored rate snapshot.

A snapshot maps ``base -> {target: units of target per 1 base}``. Any pair is
converted through the base when neither side is the base itself. No rounding
happens here; reports and settlement round at their own boundaries.
"""


@dataclass(frozen=True)
class RateSnapshot:
    base: str
    rates: Dict[str, float]
    as_of: Dict[str, datetime] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=datetime.utcnow)

    def has(self, currency: str) -> bool:
        return currency.upper() in self.rates


@dataclass(frozen=True)
class ConversionResult:
    original_amount: float
    from_currency: str
    to_currency: str
    rate: float
    converted_amount: float


def _rate(snapshot: RateSnapshot, currency: str, pair: tuple) -> float:
    value = snapshot.rates.get(currency)
    if not value:
        raise RateUnavailable(*pair)
    return value


def conversion_rate(from_currency: str, to_currency: str, snapshot: RateSnapshot) -> float:
    """Units of ``to_currency`` per 1 ``from_currency``; raises RateUnavailable."""
    src = from_currency.upper()
    dst = to_currency.upper()
    base = snapshot.base.upper()
    pair = (src, dst)
    if src == dst:
        return 1.0
    if src == base:
        return _rate(snapshot, dst, pair)
    if dst == base:
        return 1 / _rate(snapshot, src, pair)
    return (1 / _rate(snapshot, src, pair)) * _rate(snapshot, dst, pair)


def convert(
    amount: float, from_currency: str, to_currency: str, snapshot: RateSnapshot
) -> ConversionResult:
    rate = conversion_rate(from_currency, to_currency, snapshot)
    return ConversionResult(
        original_amount=amount,
        from_currency=from_currency.upper(),
        to_currency=to_currency.upper(),
        rate=rate,
        converted_amount=amount * rate,
    )
