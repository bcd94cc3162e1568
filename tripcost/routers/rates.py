from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Dict

from tripcost.core.config import Settings
from tripcost.models.rates import ExchangeRates, RateOverrideIn
from tripcost.services.rates.cache_service import ExchangeRateService
from .deps import get_rate_service, get_settings_dep

"""Exchange rate endpoints.

    - GET /exchange-rates?base=USD&symbols=EUR,JPY -> base-anchored rates
    - GET /rates/overrides                         -> list active overrides
    - POST /rates/overrides                        -> set override {from_currency, to_currency, rate, ttl_seconds}
    - DELETE /rates/overrides/{from_currency}/{to_currency} -> clear override

Overrides are in-memory only and guarded by settings.enable_rate_override;
a process restart clears them.
"""

router = APIRouter(tags=["rates"])


def require_override_enabled(settings: Settings = Depends(get_settings_dep)):
    if not settings.enable_rate_override:
        raise HTTPException(status_code=403, detail="rate override feature disabled")
    return True


@router.get(
    "/exchange-rates",
    response_model=ExchangeRates,
    summary="Current rates from a base currency",
)
def get_exchange_rates(
    base: str = Query("USD", min_length=3, max_length=3),
    symbols: str = Query("", description="Comma separated target currencies"),
    svc: ExchangeRateService = Depends(get_rate_service),
):
    targets = [s.strip().upper() for s in symbols.split(",") if s.strip()]
    if not targets:
        raise HTTPException(status_code=400, detail="at least one symbol is required")
    return svc.get_exchange_rates(base.upper(), targets)


@router.get("/rates/overrides", summary="List active manual rate overrides")
async def list_overrides(
    _: bool = Depends(require_override_enabled),
    svc: ExchangeRateService = Depends(get_rate_service),
) -> Dict[str, Dict[str, str | float]]:
    return svc.list_overrides()


@router.post("/rates/overrides", summary="Set a manual rate override")
async def set_override(
    payload: RateOverrideIn,
    _: bool = Depends(require_override_enabled),
    svc: ExchangeRateService = Depends(get_rate_service),
):
    try:
        svc.set_override(
            payload.from_currency, payload.to_currency, payload.rate, payload.ttl_seconds
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    key = f"{payload.from_currency}/{payload.to_currency}"
    return {"status": "ok", "pair": key, "override": svc.list_overrides().get(key)}


@router.delete(
    "/rates/overrides/{from_currency}/{to_currency}",
    summary="Clear a manual rate override",
)
async def clear_override(
    from_currency: str,
    to_currency: str,
    _: bool = Depends(require_override_enabled),
    svc: ExchangeRateService = Depends(get_rate_service),
):
    removed = svc.clear_override(from_currency, to_currency)
    if not removed:
        raise HTTPException(status_code=404, detail="override not found")
    return {"status": "deleted", "pair": f"{from_currency.upper()}/{to_currency.upper()}"}
