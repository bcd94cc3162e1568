from __future__ import annotations

"""Concrete rate providers and factory.

'static' answers from a fixed USD anchored table (offline, deterministic);
'yahoo' queries the public chart endpoint where symbol ``EURUSD=X`` quotes
1 EUR in USD.
"""
import logging
from typing import Dict, Optional
from urllib.parse import quote

from tripcost.core.config import Settings
from tripcost.core.errors import TransientNetworkFailure
from tripcost.services.http_client import get_json
from .base import RateProvider

logger = logging.getLogger("tripcost.rates.providers")

# Units of currency per 1 USD
_STATIC_USD_RATES: Dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 150.0,
    "AUD": 1.52,
    "CAD": 1.36,
    "SGD": 1.34,
    "MYR": 4.70,
    "INR": 83.0,
    "THB": 36.0,
}


class StaticRateProvider(RateProvider):
    name = "static"

    def __init__(self, usd_rates: Optional[Dict[str, float]] = None):
        self._usd_rates = dict(usd_rates or _STATIC_USD_RATES)

    def fetch_rate(self, from_currency: str, to_currency: str) -> Optional[float]:  # type: ignore[override]
        src = self._usd_rates.get(from_currency.upper())
        dst = self._usd_rates.get(to_currency.upper())
        if not src or not dst:
            return None
        return dst / src


class YahooRateProvider(RateProvider):
    name = "yahoo"
    _HEADERS = {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    }

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        backoff: float = 0.5,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff

    def fetch_rate(self, from_currency: str, to_currency: str) -> Optional[float]:  # type: ignore[override]
        symbol = quote(f"{from_currency.upper()}{to_currency.upper()}=X")
        url = f"{self._base_url}/{symbol}"
        try:
            data = get_json(
                url,
                timeout=self._timeout,
                retries=self._retries,
                backoff=self._backoff,
                headers=self._HEADERS,
            )
        except TransientNetworkFailure as e:
            logger.warning("rate lookup failed for %s: %s", symbol, e)
            return None
        price = _extract_price(data)
        if price is None:
            logger.warning("no price in quote response for %s", symbol)
        return price


def _extract_price(data: dict) -> Optional[float]:
    try:
        price = data["chart"]["result"][0]["meta"]["regularMarketPrice"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
        return None
    return float(price)


def make_rate_provider(kind: str, settings: Settings) -> RateProvider:
    if kind == "static":
        return StaticRateProvider()
    if kind == "yahoo":
        return YahooRateProvider(
            settings.rate_quote_url,
            timeout=settings.http_timeout_seconds,
            retries=settings.http_retries,
            backoff=settings.http_backoff_seconds,
        )
    raise ValueError(f"Unknown rate provider kind '{kind}'")
