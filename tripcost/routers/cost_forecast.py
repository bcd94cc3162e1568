from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from tripcost.core.config import Settings
from tripcost.core.errors import NotFound
from tripcost.db.dal import Database
from tripcost.models.forecast import CollectCostsIn, CostForecastReport
from tripcost.services.forecast import collect_costs, get_cost_forecast_report
from tripcost.services.rates.cache_service import ExchangeRateService
from .deps import get_db, get_rate_service, get_settings_dep

router = APIRouter(prefix="/trips/{trip_id}/cost-forecast", tags=["cost-forecast"])


@router.post(
    "",
    response_model=CostForecastReport,
    summary="Collect planned costs into a forecast",
)
def collect_costs_endpoint(
    trip_id: int,
    payload: Optional[CollectCostsIn] = Body(None),
    db: Database = Depends(get_db),
    rate_service: ExchangeRateService = Depends(get_rate_service),
    settings: Settings = Depends(get_settings_dep),
):
    """Re-collect planned costs for the trip.

    Without a body (or with ``statuses`` omitted) the configured default
    statuses are used. Replaces the trip's previous collection; actuals of
    expenses that are still selected are kept.
    """
    statuses = payload.statuses if payload else None
    report = collect_costs(db, rate_service, trip_id, statuses, settings=settings)
    if report is None:
        raise NotFound(f"trip {trip_id} not found")
    return report


@router.get(
    "",
    response_model=CostForecastReport,
    summary="Last collected cost forecast",
)
async def get_cost_forecast_endpoint(trip_id: int, db: Database = Depends(get_db)):
    report = get_cost_forecast_report(db, trip_id)
    if report is None:
        raise HTTPException(status_code=404, detail="cost forecast not collected")
    return report
