"""Expense actuals: transfer from forecast splits, listing and partial updates.

Transfer is idempotent per (expense, traveler, installment 1); reset removes
every actual of a trip so a fresh transfer can start over.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from tripcost.db.dal import Database
from tripcost.models.actuals import ActualUpdate, ExpenseActual

logger = logging.getLogger("tripcost.actuals")

# ActualUpdate field -> expense_actuals column
_UPDATE_COLUMNS = {
    "actual_amount": "amount",
    "actual_date": "date",
    "paid_by_traveler_id": "paid_by_traveler_id",
    "payment_method_key": "payment_method_key",
    "receipt_url": "receipt_url",
    "actual_notes": "notes",
}


def to_actual_columns(supplied: Dict[str, Any]) -> Dict[str, Any]:
    """Map supplied ActualUpdate fields onto column values ready to bind."""
    columns = {}
    for field, value in supplied.items():
        if isinstance(value, date):
            value = value.isoformat()
        columns[_UPDATE_COLUMNS[field]] = value
    return columns


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", ""))


def row_to_actual(row: dict) -> ExpenseActual:
    return ExpenseActual(
        actual_id=row["id"],
        expense_id=row["expense_id"],
        traveler_id=row["traveler_id"],
        installment_number=row["installment_number"],
        actual_amount=row["amount"],
        actual_date=date.fromisoformat(row["date"]) if row.get("date") else None,
        paid_by_traveler_id=row.get("paid_by_traveler_id"),
        payment_method_key=row.get("payment_method_key"),
        receipt_url=row.get("receipt_url"),
        actual_notes=row.get("notes"),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        expense_description=row.get("expense_description"),
        expense_currency=row.get("expense_currency"),
        estimated_amount=row.get("estimated_amount"),
        traveler_name=row.get("traveler_name"),
        paid_by_name=row.get("paid_by_name"),
    )


def transfer_forecast_to_actuals(db: Database, trip_id: int) -> int:
    """Create one installment-1 actual per split that has none; return count created."""
    created = db.transfer_splits_to_actuals(trip_id)
    logger.info("transferred %d forecast splits to actuals for trip %s", created, trip_id)
    return created


def reset_actuals(db: Database, trip_id: int) -> int:
    deleted = db.delete_actuals_for_trip(trip_id)
    logger.info("deleted %d actuals for trip %s", deleted, trip_id)
    return deleted


def get_actuals_by_trip(
    db: Database,
    trip_id: int,
    traveler_id: Optional[int] = None,
    paid_by: Optional[int] = None,
) -> List[ExpenseActual]:
    rows = db.list_actuals(trip_id, traveler_id=traveler_id, paid_by=paid_by)
    return [row_to_actual(r) for r in rows]


def get_actuals_by_traveler(
    db: Database, trip_id: int, traveler_id: int
) -> List[ExpenseActual]:
    return get_actuals_by_trip(db, trip_id, traveler_id=traveler_id)


def get_actuals_by_payer(
    db: Database, trip_id: int, payer_id: int
) -> List[ExpenseActual]:
    return get_actuals_by_trip(db, trip_id, paid_by=payer_id)


def get_actual(db: Database, actual_id: int) -> Optional[ExpenseActual]:
    row = db.get_actual(actual_id)
    return row_to_actual(row) if row else None


def update_actual(
    db: Database, actual_id: int, payload: ActualUpdate
) -> Optional[ExpenseActual]:
    """Apply only the fields present in ``payload``; None if the actual is missing.

    Raises ValueError when the payer is not a traveler of the same trip.
    """
    current = db.get_actual(actual_id)
    if current is None:
        return None
    supplied = payload.supplied_fields()
    payer_id = supplied.get("paid_by_traveler_id")
    if payer_id is not None:
        payer = db.get_traveler(payer_id)
        if payer is None or payer["trip_id"] != current["trip_id"]:
            raise ValueError(f"traveler {payer_id} is not part of this trip")
    columns = to_actual_columns(supplied)
    if not db.update_actual(actual_id, columns):
        return None
    if columns:
        logger.info("updated actual %s fields=%s", actual_id, sorted(supplied))
    return get_actual(db, actual_id)


__all__ = [
    "row_to_actual",
    "to_actual_columns",
    "transfer_forecast_to_actuals",
    "reset_actuals",
    "get_actuals_by_trip",
    "get_actuals_by_traveler",
    "get_actuals_by_payer",
    "get_actual",
    "update_actual",
]
