"""Runtime application settings backed by the metadata table.

Environment settings (``core.config``) provide defaults; these accessors let
an operator switch behaviour without a restart. All getters are resilient: if a
key is missing or invalid, fall back to the environment value.

Metadata keys:
  - exchange_rate_provider_override: str in {static, yahoo}
  - rates_cache_ttl: int (seconds, 60..86400)
"""

from __future__ import annotations
from typing import Optional, Protocol

from tripcost.core.config import Settings

ALLOWED_RATE_PROVIDERS = {"static", "yahoo"}
PROVIDER_KEY = "exchange_rate_provider_override"
CACHE_TTL_KEY = "rates_cache_ttl"


class _MetadataStore(Protocol):
    def get_metadata(self, key: str) -> Optional[str]: ...  # noqa: D401

    def set_metadata(self, key: str, value: str) -> None: ...  # noqa: D401


def get_effective_rate_provider(db: _MetadataStore, settings: Settings) -> str:
    override = db.get_metadata(PROVIDER_KEY)
    if override and override in ALLOWED_RATE_PROVIDERS:
        return override
    return settings.exchange_rate_provider


def set_rate_provider(db: _MetadataStore, provider: str) -> None:
    if provider not in ALLOWED_RATE_PROVIDERS:
        raise ValueError(f"Unsupported provider '{provider}'")
    db.set_metadata(PROVIDER_KEY, provider)


def get_rates_cache_ttl(db: _MetadataStore, settings: Settings) -> int:
    val = db.get_metadata(CACHE_TTL_KEY)
    if val is None:
        return settings.rates_cache_ttl_seconds
    try:
        return max(60, min(86400, int(val)))
    except ValueError:
        return settings.rates_cache_ttl_seconds


def set_rates_cache_ttl(db: _MetadataStore, seconds: int) -> None:
    if not 60 <= seconds <= 86400:
        raise ValueError("rates cache ttl must be within 60..86400 seconds")
    db.set_metadata(CACHE_TTL_KEY, str(seconds))


__all__ = [
    "ALLOWED_RATE_PROVIDERS",
    "get_effective_rate_provider",
    "set_rate_provider",
    "get_rates_cache_ttl",
    "set_rates_cache_ttl",
]
