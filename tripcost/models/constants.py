"""Domain constants and enumerations for validation.

Kept as plain sets / tuples; module order doubles as report order.
"""

from typing import Dict, Set, Tuple

FLIGHTS_MODULE = "flights"
ACCOMMODATIONS_MODULE = "accommodations"
ITINERARY_MODULE = "itinerary"
ADHOC_MODULE = "adhoc"

MODULES: Tuple[str, ...] = (
    FLIGHTS_MODULE,
    ACCOMMODATIONS_MODULE,
    ITINERARY_MODULE,
    ADHOC_MODULE,
)
MODULE_TABLES: Dict[str, str] = {
    FLIGHTS_MODULE: "flights",
    ACCOMMODATIONS_MODULE: "accommodations",
    ITINERARY_MODULE: "itinerary_activities",
    ADHOC_MODULE: "adhoc_expenses",
}

PLANNED_STATUSES: Set[str] = {"draft", "shortlisted", "confirmed", "not_selected"}
DEFAULT_FORECAST_STATUSES: Tuple[str, ...] = ("confirmed", "shortlisted")

COST_TYPES: Set[str] = {"total", "per_head"}

# Balances within one cent of zero count as settled
SETTLED_TOLERANCE = 0.01
