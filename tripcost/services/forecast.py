from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from tripcost.core.config import Settings, get_settings
from tripcost.core.errors import RateUnavailable
from tripcost.db.dal import Database
from tripcost.models.constants import MODULES
from tripcost.models.forecast import (
    CostForecastReport,
    CostLineItem,
    FxItem,
    ModuleBreakdown,
    SkippedItem,
    TravelerShare,
)
from tripcost.models.trip import Traveler
from tripcost.services.money import round2, split_evenly, total2
from tripcost.services.rates.cache_service import ExchangeRateService
from tripcost.services.rates.conversion import convert

"""Cost forecast aggregation.

Pulls planned line items from the four planning modules, converts them into
the trip's base currency, splits each converted total across the item's
cost-sharing travelers and persists the result as the trip's expenses and
expense splits. The report is always rebuilt from what was persisted, so a
fresh collection and a later read return the same shape.

Partial data never aborts a collection:
    - an item whose rate cannot be resolved contributes zero and is listed
      under ``unconverted_items``;
    - an item with no cost-sharers counts toward totals but no share and is
      listed under ``unallocated_items``;
    - a malformed item (no amount or currency, a non-numeric or negative
      amount) is skipped and listed under ``skipped_items``.
"""

logger = logging.getLogger("tripcost.forecast")

FORECAST_META_KEY = "forecast:{trip_id}"


@dataclass(frozen=True)
class PlannedLineItem:
    module: str
    item_id: int
    description: str
    amount: float
    currency: str
    cost_type: str
    status: str
    traveler_ids: Tuple[int, ...]

    @property
    def headcount(self) -> int:
        if self.cost_type == "per_head":
            return max(1, len(self.traveler_ids))
        return 1

    @property
    def original_total(self) -> float:
        return self.amount * self.headcount


def fetch_line_items(
    db: Database, trip_id: int, statuses: Iterable[str]
) -> Tuple[List[PlannedLineItem], List[SkippedItem]]:
    items: List[PlannedLineItem] = []
    skipped: List[SkippedItem] = []
    status_set = set(statuses)
    for module in MODULES:
        for row in db.list_line_items(trip_id, module, status_set):
            reason = _malformed_reason(row)
            if reason:
                skipped.append(
                    SkippedItem(
                        module=module,
                        item_id=int(row["id"]),
                        description=row["description"],
                        reason=reason,
                    )
                )
                continue
            items.append(
                PlannedLineItem(
                    module=module,
                    item_id=int(row["id"]),
                    description=row["description"],
                    amount=float(row["amount"]),
                    currency=row["currency"].strip().upper(),
                    cost_type=row["cost_type"],
                    status=row["status"],
                    traveler_ids=tuple(row["traveler_ids"]),
                )
            )
    return items, skipped


def _malformed_reason(row: dict) -> Optional[str]:
    if row.get("amount") is None:
        return "missing amount"
    try:
        amount = float(row["amount"])
    except (TypeError, ValueError):
        return "invalid amount"
    if not math.isfinite(amount):
        return "invalid amount"
    if amount < 0:
        return "negative amount"
    if not row.get("currency") or not str(row["currency"]).strip():
        return "missing currency"
    return None


def resolve_base_currency(
    db: Database, trip_id: int, settings: Optional[Settings] = None
) -> str:
    """Primary traveler's currency, else the trip default, else the app default."""
    settings = settings or get_settings()
    for traveler in map(Traveler.model_validate, db.list_travelers(trip_id)):
        if traveler.is_primary and traveler.currency:
            return traveler.currency
    trip = db.get_trip(trip_id)
    if trip and trip.get("base_currency"):
        return trip["base_currency"].upper()
    return settings.default_base_currency.upper()


def collect_costs(
    db: Database,
    rate_service: ExchangeRateService,
    trip_id: int,
    statuses: Optional[Iterable[str]] = None,
    settings: Optional[Settings] = None,
) -> Optional[CostForecastReport]:
    """Collect planned costs for a trip and persist them; None if the trip is unknown."""
    settings = settings or get_settings()
    if db.get_trip(trip_id) is None:
        return None
    status_filter = sorted(set(statuses or settings.forecast_default_statuses))
    base = resolve_base_currency(db, trip_id, settings)

    # Sharer order decides who absorbs leftover cents
    sharer_order = [
        int(t["id"]) for t in db.list_travelers(trip_id, cost_sharers_only=True)
    ]
    items, skipped = fetch_line_items(db, trip_id, status_filter)
    snapshot = rate_service.get_rates(base, {i.currency for i in items})

    rows = []
    for item in items:
        try:
            conversion = convert(item.original_total, item.currency, base, snapshot)
        except RateUnavailable as e:
            logger.warning(
                "no rate for %s item %s (%s); excluded from base totals",
                item.module,
                item.item_id,
                e,
            )
            amount, rate, rate_missing = 0.0, None, True
        else:
            amount, rate, rate_missing = (
                round2(conversion.converted_amount),
                conversion.rate,
                False,
            )

        sharers = [tid for tid in sharer_order if tid in item.traveler_ids]
        splits: List[Tuple[int, float]] = []
        if sharers and not rate_missing:
            splits = list(zip(sharers, split_evenly(amount, len(sharers))))
        elif not sharers:
            logger.info(
                "%s item %s has no cost-sharers; not allocated", item.module, item.item_id
            )

        rows.append(
            {
                "module": item.module,
                "source_id": item.item_id,
                "description": item.description,
                "currency": base,
                "amount": amount,
                "original_currency": item.currency,
                "original_amount": item.original_total,
                "exchange_rate": rate,
                "cost_type": item.cost_type,
                "headcount": item.headcount,
                "status": item.status,
                "rate_missing": rate_missing,
                "splits": splits,
            }
        )

    removed = db.save_forecast_collection(trip_id, rows)
    meta = {
        "base_currency": base,
        "statuses": status_filter,
        "generated_at": datetime.utcnow().isoformat(),
        "skipped_items": [s.model_dump() for s in skipped],
    }
    db.set_metadata(FORECAST_META_KEY.format(trip_id=trip_id), json.dumps(meta))
    logger.info(
        "collected %d items for trip %s (%d skipped, %d stale removed)",
        len(rows),
        trip_id,
        len(skipped),
        removed,
    )
    return get_cost_forecast_report(db, trip_id)


def load_forecast_meta(db: Database, trip_id: int) -> Optional[dict]:
    raw = db.get_metadata(FORECAST_META_KEY.format(trip_id=trip_id))
    if raw is None:
        return None
    return json.loads(raw)


def get_cost_forecast_report(
    db: Database, trip_id: int
) -> Optional[CostForecastReport]:
    """Rebuild the report of the last collection; None if never collected."""
    meta = load_forecast_meta(db, trip_id)
    if meta is None:
        return None
    base = meta["base_currency"]

    splits_by_expense: Dict[int, List[dict]] = {}
    for split in db.list_splits(trip_id):
        splits_by_expense.setdefault(int(split["expense_id"]), []).append(split)

    items_by_module: Dict[str, List[CostLineItem]] = {m: [] for m in MODULES}
    fx_items: List[FxItem] = []
    for row in db.list_expenses(trip_id):
        splits = splits_by_expense.get(int(row["id"]), [])
        rate_missing = bool(row["rate_missing"])
        item = CostLineItem(
            id=int(row["source_id"]),
            expense_id=int(row["id"]),
            module=row["module"],
            description=row["description"],
            amount=float(row["original_amount"]),
            currency_code=row["original_currency"],
            cost_type=row["cost_type"],
            headcount=int(row["headcount"]),
            status=row["status"],
            converted_amount=None if rate_missing else float(row["amount"]),
            exchange_rate=row["exchange_rate"],
            rate_missing=rate_missing,
            sharer_ids=[int(s["traveler_id"]) for s in splits],
            unallocated=not rate_missing and not splits,
        )
        items_by_module.setdefault(item.module, []).append(item)
        if item.currency_code != base and not rate_missing:
            fx_items.append(
                FxItem(
                    module=item.module,
                    description=item.description,
                    original_amount=item.amount,
                    original_currency=item.currency_code,
                    exchange_rate=float(row["exchange_rate"]),
                    converted_amount=float(row["amount"]),
                    converted_currency=base,
                )
            )

    breakdown = []
    all_items: List[CostLineItem] = []
    for module in MODULES:
        module_items = items_by_module[module]
        all_items.extend(module_items)
        breakdown.append(
            ModuleBreakdown(
                module=module,
                total=total2([i.converted_amount or 0.0 for i in module_items]),
                currency_code=base,
                items_count=len(module_items),
                items=module_items,
            )
        )

    share_totals: Dict[int, float] = {}
    for splits in splits_by_expense.values():
        for s in splits:
            tid = int(s["traveler_id"])
            share_totals[tid] = share_totals.get(tid, 0.0) + float(s["estimated_amount"])
    sharers = [
        Traveler.model_validate(row)
        for row in db.list_travelers(trip_id, cost_sharers_only=True)
    ]
    shares = [
        TravelerShare(
            traveler_id=t.id,
            traveler_name=t.name,
            is_primary=t.is_primary,
            traveler_currency=t.currency,
            share_amount=round2(share_totals.get(t.id, 0.0)),
            share_currency=base,
        )
        for t in sharers
    ]

    return CostForecastReport(
        trip_id=trip_id,
        base_currency=base,
        total_cost=total2([m.total for m in breakdown]),
        module_breakdown=breakdown,
        traveler_shares=shares,
        fx_items=fx_items,
        unconverted_items=[i for i in all_items if i.rate_missing],
        unallocated_items=[i for i in all_items if i.unallocated],
        skipped_items=[SkippedItem(**s) for s in meta.get("skipped_items", [])],
        status_filter=meta["statuses"],
        cost_sharers_count=len(sharers),
        generated_at=datetime.fromisoformat(meta["generated_at"]),
    )
