from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from tripcost.core.config import Settings, get_settings
from tripcost.db.dal import Database
from tripcost.models.actuals import (
    SettlementSummary,
    SettlementTransaction,
    TravelerBalance,
)
from tripcost.models.constants import SETTLED_TOLERANCE
from tripcost.services.forecast import load_forecast_meta, resolve_base_currency
from tripcost.services.money import round2

"""Settlement calculator.

Balances come from recorded actuals: what each traveler paid for anyone
minus their own actuals that have a payer. Actuals with no payer yet are
reported as ``total_unpaid`` and stay out of balances, so balances always
net to zero.
"""

logger = logging.getLogger("tripcost.settlement")


def _cents(value: float) -> int:
    return int(round(value * 100))


def plan_settlements(balances: Sequence[TravelerBalance]) -> List[SettlementTransaction]:
    """Greedy debtor/creditor netting.

    Debtors and creditors keep the order of ``balances``. Each debtor pays
    creditors in turn until its debt is gone. Every transaction exhausts a
    debtor or a creditor, so at most ``D + C - 1`` transactions are produced.
    This is a heuristic; it does not search for the global minimum number of
    transactions.
    """
    debtors = [[b, -_cents(b.balance)] for b in balances if b.balance < -SETTLED_TOLERANCE]
    creditors = [[b, _cents(b.balance)] for b in balances if b.balance > SETTLED_TOLERANCE]

    out: List[SettlementTransaction] = []
    ci = 0
    for debtor, owed in debtors:
        while owed > 0 and ci < len(creditors):
            creditor, due = creditors[ci]
            amount = min(owed, due)
            out.append(
                SettlementTransaction(
                    from_traveler_id=debtor.traveler_id,
                    from_name=debtor.traveler_name,
                    to_traveler_id=creditor.traveler_id,
                    to_name=creditor.traveler_name,
                    amount=round2(amount / 100),
                )
            )
            owed -= amount
            creditors[ci][1] = due - amount
            if creditors[ci][1] <= 0:
                ci += 1
    return out


def get_settlement_summary(
    db: Database, trip_id: int, settings: Optional[Settings] = None
) -> Optional[SettlementSummary]:
    """Balances and a settlement plan for a trip; None if the trip is unknown."""
    settings = settings or get_settings()
    if db.get_trip(trip_id) is None:
        return None
    meta = load_forecast_meta(db, trip_id)
    base = meta["base_currency"] if meta else resolve_base_currency(db, trip_id, settings)

    total_estimated = round2(db.total_estimated(trip_id))
    total_actual = round2(db.total_actual(trip_id, paid=True))
    total_unpaid = round2(db.total_actual(trip_id, paid=False))

    travelers = []
    for row in db.traveler_payment_totals(trip_id):
        should_pay = round2(row["should_pay"])
        actually_paid = round2(row["actually_paid"])
        travelers.append(
            TravelerBalance(
                traveler_id=row["traveler_id"],
                traveler_name=row["traveler_name"],
                is_primary=bool(row["is_primary"]),
                should_pay=should_pay,
                actually_paid=actually_paid,
                balance=round2(actually_paid - should_pay),
            )
        )
    settlements = plan_settlements(travelers)
    logger.debug(
        "settlement for trip %s: %d travelers, %d transactions",
        trip_id,
        len(travelers),
        len(settlements),
    )
    return SettlementSummary(
        trip_id=trip_id,
        base_currency=base,
        total_estimated=total_estimated,
        total_actual=total_actual,
        total_unpaid=total_unpaid,
        variance=round2(total_actual - total_estimated),
        travelers=travelers,
        settlements=settlements,
    )
