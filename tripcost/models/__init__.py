"""Pydantic domain models for trip cost forecasting and settlement."""

from .constants import (
    MODULES,
    COST_TYPES,
    PLANNED_STATUSES,
    DEFAULT_FORECAST_STATUSES,
)  # re-export
from .trip import Traveler
from .forecast import (
    CostLineItem,
    ModuleBreakdown,
    TravelerShare,
    FxItem,
    SkippedItem,
    CostForecastReport,
    CollectCostsIn,
)
from .actuals import (
    ExpenseActual,
    ActualUpdate,
    TransferResult,
    ResetResult,
    TravelerBalance,
    SettlementTransaction,
    SettlementSummary,
)
from .rates import ExchangeRates, RateOverrideIn

__all__ = [
    "Traveler",
    "MODULES",
    "COST_TYPES",
    "PLANNED_STATUSES",
    "DEFAULT_FORECAST_STATUSES",
    "CostLineItem",
    "ModuleBreakdown",
    "TravelerShare",
    "FxItem",
    "SkippedItem",
    "CostForecastReport",
    "CollectCostsIn",
    "ExpenseActual",
    "ActualUpdate",
    "TransferResult",
    "ResetResult",
    "TravelerBalance",
    "SettlementTransaction",
    "SettlementSummary",
    "ExchangeRates",
    "RateOverrideIn",
]
