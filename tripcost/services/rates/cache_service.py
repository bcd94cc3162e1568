from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import threading
from typing import Dict, Iterable, Optional, Tuple, TYPE_CHECKING

from tripcost.core.config import Settings
from tripcost.models.rates import ExchangeRates
from tripcost.services.app_settings import (
    get_effective_rate_provider,
    get_rates_cache_ttl,
)
from .base import RateProvider
from .conversion import RateSnapshot
from .providers import make_rate_provider

if TYPE_CHECKING:  # pragma: no cover
    from tripcost.db.dal import Database

"""Exchange rate service: snapshot building, TTL cache and manual overrides.

Purpose:
    Resolve a base-anchored ``RateSnapshot`` for a set of target currencies,
    tolerating partial availability: a target the provider cannot resolve is
    simply left out of the snapshot.

Design:
    - Wraps a RateProvider (selected via settings / metadata override).
    - Each (base, target) pair is looked up independently; lookups for one
      snapshot run concurrently on a small thread pool.
    - Resolved pairs are cached for a configurable TTL.
    - Manual overrides (per pair, with expiry) win over cache and provider.
"""

_Pair = Tuple[str, str]
_MAX_WORKERS = 8


@dataclass
class _CacheEntry:
    rate: float
    fetched_at: datetime


@dataclass
class _OverrideEntry:
    rate: float
    expires_at: datetime


class ExchangeRateService:
    def __init__(
        self,
        settings: Settings,
        db: "Database" | None = None,
        provider: RateProvider | None = None,
    ):
        self._settings = settings
        self._db = db
        self._provider = provider
        self._injected = provider is not None
        self._cache: Dict[_Pair, _CacheEntry] = {}
        self._overrides: Dict[_Pair, _OverrideEntry] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger("tripcost.rates")

    # Internal --------------------------------------------------
    def _current_provider(self) -> RateProvider:
        if self._injected:
            return self._provider  # type: ignore[return-value]
        if self._db is None:
            kind = self._settings.exchange_rate_provider
        else:
            kind = get_effective_rate_provider(self._db, self._settings)
        if self._provider is None or self._provider.name != kind:
            self._provider = make_rate_provider(kind, self._settings)
            with self._lock:
                self._cache.clear()
        return self._provider

    def _ttl(self) -> timedelta:
        if self._db is None:
            return timedelta(seconds=self._settings.rates_cache_ttl_seconds)
        return timedelta(seconds=get_rates_cache_ttl(self._db, self._settings))

    def _purge_expired_overrides(self) -> None:
        now = datetime.utcnow()
        with self._lock:
            expired = [k for k, v in self._overrides.items() if v.expires_at <= now]
            for k in expired:
                self._overrides.pop(k, None)

    def _lookup(
        self, provider: RateProvider, pair: _Pair, ttl: timedelta
    ) -> Optional[_CacheEntry]:
        with self._lock:
            override = self._overrides.get(pair)
            if override:
                return _CacheEntry(rate=override.rate, fetched_at=datetime.utcnow())
            entry = self._cache.get(pair)
            if entry and datetime.utcnow() - entry.fetched_at < ttl:
                return entry
        try:
            rate = provider.fetch_rate(*pair)
        except Exception:
            self._logger.warning(
                "rate provider %s failed for %s->%s", provider.name, *pair, exc_info=True
            )
            return None
        if rate is None or rate <= 0:
            self._logger.warning("exchange rate unavailable for %s->%s", *pair)
            return None
        entry = _CacheEntry(rate=rate, fetched_at=datetime.utcnow())
        with self._lock:
            self._cache[pair] = entry
        return entry

    # Public API -----------------------------------------------
    def get_rates(self, base: str, targets: Iterable[str]) -> RateSnapshot:
        """Snapshot of ``base -> target`` rates; unresolved targets are omitted."""
        base = base.upper()
        unique = sorted({t.strip().upper() for t in targets if t and t.strip()} - {base})
        now = datetime.utcnow()
        rates: Dict[str, float] = {base: 1.0}
        as_of: Dict[str, datetime] = {base: now}
        if unique:
            self._purge_expired_overrides()
            provider = self._current_provider()
            ttl = self._ttl()
            workers = min(_MAX_WORKERS, len(unique))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                entries = list(
                    pool.map(lambda t: self._lookup(provider, (base, t), ttl), unique)
                )
            for target, entry in zip(unique, entries):
                if entry is not None:
                    rates[target] = entry.rate
                    as_of[target] = entry.fetched_at
        return RateSnapshot(base=base, rates=rates, as_of=as_of, fetched_at=now)

    def get_exchange_rates(self, base: str, symbols: Iterable[str]) -> ExchangeRates:
        snapshot = self.get_rates(base, symbols)
        return ExchangeRates(
            base=snapshot.base, rates=dict(snapshot.rates), fetched_at=snapshot.fetched_at
        )

    # Manual override API ---------------------------------------
    def set_override(
        self, from_currency: str, to_currency: str, rate: float, ttl_seconds: int
    ) -> None:
        if rate <= 0:
            raise ValueError("override rate must be positive")
        if ttl_seconds <= 0:
            raise ValueError("override ttl must be positive seconds")
        pair = (from_currency.upper(), to_currency.upper())
        with self._lock:
            self._overrides[pair] = _OverrideEntry(
                rate=rate, expires_at=datetime.utcnow() + timedelta(seconds=ttl_seconds)
            )

    def clear_override(self, from_currency: str, to_currency: str) -> bool:
        pair = (from_currency.upper(), to_currency.upper())
        with self._lock:
            return self._overrides.pop(pair, None) is not None

    def list_overrides(self) -> Dict[str, Dict[str, str | float]]:
        self._purge_expired_overrides()
        with self._lock:
            return {
                f"{src}/{dst}": {"rate": v.rate, "expires_at": v.expires_at.isoformat()}
                for (src, dst), v in self._overrides.items()
            }
