from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tripcost.core.config import Settings
from tripcost.core.errors import NotFound
from tripcost.db.dal import Database
from tripcost.models.actuals import (
    ActualUpdate,
    ExpenseActual,
    ResetResult,
    SettlementSummary,
    TransferResult,
)
from tripcost.services import actuals as actuals_service
from tripcost.services.settlement import get_settlement_summary
from .deps import get_db, get_settings_dep

"""Expense actuals router.

Endpoints (all scoped to one trip):
    - GET   /trips/{trip_id}/expense-actuals              -> list (traveler_id / paid_by filters)
    - POST  /trips/{trip_id}/expense-actuals/transfer     -> forecast splits -> actuals
    - POST  /trips/{trip_id}/expense-actuals/reset        -> delete all actuals
    - GET   /trips/{trip_id}/expense-actuals/settlement   -> balances + settlement plan
    - PATCH /trips/{trip_id}/expense-actuals/{actual_id}  -> partial update
"""

router = APIRouter(prefix="/trips/{trip_id}/expense-actuals", tags=["expense-actuals"])


def _require_trip(db: Database, trip_id: int) -> None:
    if db.get_trip(trip_id) is None:
        raise NotFound(f"trip {trip_id} not found")


@router.get("", response_model=List[ExpenseActual], summary="List expense actuals")
async def list_actuals_endpoint(
    trip_id: int,
    traveler_id: Optional[int] = Query(None, description="Only actuals owed by this traveler"),
    paid_by: Optional[int] = Query(None, description="Only actuals paid by this traveler"),
    db: Database = Depends(get_db),
):
    _require_trip(db, trip_id)
    return actuals_service.get_actuals_by_trip(
        db, trip_id, traveler_id=traveler_id, paid_by=paid_by
    )


@router.post(
    "/transfer",
    response_model=TransferResult,
    summary="Create actuals from the forecast splits",
)
async def transfer_endpoint(trip_id: int, db: Database = Depends(get_db)):
    _require_trip(db, trip_id)
    count = actuals_service.transfer_forecast_to_actuals(db, trip_id)
    return TransferResult(transferred_count=count)


@router.post("/reset", response_model=ResetResult, summary="Delete all actuals of the trip")
async def reset_endpoint(trip_id: int, db: Database = Depends(get_db)):
    _require_trip(db, trip_id)
    count = actuals_service.reset_actuals(db, trip_id)
    return ResetResult(deleted_count=count)


@router.get(
    "/settlement",
    response_model=SettlementSummary,
    summary="Traveler balances and who pays whom",
)
async def settlement_endpoint(
    trip_id: int,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    summary = get_settlement_summary(db, trip_id, settings=settings)
    if summary is None:
        raise NotFound(f"trip {trip_id} not found")
    return summary


@router.patch(
    "/{actual_id}",
    response_model=ExpenseActual,
    summary="Partially update an expense actual",
)
async def update_actual_endpoint(
    trip_id: int,
    actual_id: int,
    payload: ActualUpdate,
    db: Database = Depends(get_db),
):
    """Only fields present in the body are written; ``null`` clears a field."""
    existing = db.get_actual(actual_id)
    if existing is None or existing["trip_id"] != trip_id:
        raise HTTPException(status_code=404, detail="expense actual not found")
    try:
        updated = actuals_service.update_actual(db, actual_id, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if updated is None:
        raise HTTPException(status_code=404, detail="expense actual not found")
    return updated
