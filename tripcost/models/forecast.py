from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import PLANNED_STATUSES

ModuleName = Literal["flights", "accommodations", "itinerary", "adhoc"]


class CostLineItem(BaseModel):
    """One collected planned expense, as it appears in the forecast report."""

    id: int  # source item id within its module
    expense_id: int
    module: ModuleName
    description: str
    amount: float  # original currency, after per-head expansion
    currency_code: str
    cost_type: Literal["total", "per_head"]
    headcount: int
    status: str
    converted_amount: Optional[float] = None  # None when the rate was unavailable
    exchange_rate: Optional[float] = None
    rate_missing: bool = False
    sharer_ids: List[int] = Field(default_factory=list)
    unallocated: bool = False


class ModuleBreakdown(BaseModel):
    module: ModuleName
    total: float
    currency_code: str
    items_count: int
    items: List[CostLineItem]


class TravelerShare(BaseModel):
    traveler_id: int
    traveler_name: str
    is_primary: bool
    traveler_currency: Optional[str] = None
    share_amount: float
    share_currency: str


class FxItem(BaseModel):
    module: ModuleName
    description: str
    original_amount: float
    original_currency: str
    exchange_rate: float
    converted_amount: float
    converted_currency: str


class SkippedItem(BaseModel):
    module: ModuleName
    item_id: int
    description: str
    reason: str


class CostForecastReport(BaseModel):
    trip_id: int
    base_currency: str
    total_cost: float
    module_breakdown: List[ModuleBreakdown]
    traveler_shares: List[TravelerShare]
    fx_items: List[FxItem]
    unconverted_items: List[CostLineItem] = Field(default_factory=list)
    unallocated_items: List[CostLineItem] = Field(default_factory=list)
    skipped_items: List[SkippedItem] = Field(default_factory=list)
    status_filter: List[str]
    cost_sharers_count: int
    generated_at: datetime


class CollectCostsIn(BaseModel):
    statuses: Optional[List[str]] = None

    @field_validator("statuses")
    @classmethod
    def valid_statuses(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned = [s.strip().lower() for s in v if s and s.strip()]
        if not cleaned:
            raise ValueError("statuses cannot be empty")
        unknown = sorted(set(cleaned) - PLANNED_STATUSES)
        if unknown:
            raise ValueError(f"unsupported status: {', '.join(unknown)}")
        return cleaned
