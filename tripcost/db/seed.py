"""Seeding helpers for a demo trip.

``seed_demo_trip`` creates one small multi-currency trip with three travelers
and a handful of planned items across all modules, so the forecast, transfer
and settlement endpoints have something to work on locally. It always creates
a new trip; re-running yields another copy.
"""

from __future__ import annotations
from datetime import date
from pathlib import Path

from tripcost.models.constants import (
    ACCOMMODATIONS_MODULE,
    ADHOC_MODULE,
    FLIGHTS_MODULE,
    ITINERARY_MODULE,
)
from .dal import Database
from .migrate import apply_migrations


def seed_demo_trip(db_path: Path) -> int:
    apply_migrations(db_path)  # ensure tables exist
    db = Database(db_path)
    trip_id = db.create_trip(
        "Lisbon & Tokyo",
        base_currency="USD",
        start_date=date(2026, 5, 1),
        end_date=date(2026, 5, 14),
    )
    alice = db.add_traveler(trip_id, "Alice", is_primary=True, currency="USD")
    bob = db.add_traveler(trip_id, "Bob", currency="EUR")
    carol = db.add_traveler(trip_id, "Carol", currency="GBP")
    kid = db.add_traveler(trip_id, "Dan", is_cost_sharer=False)
    everyone = (alice, bob, carol, kid)

    db.add_line_item(
        FLIGHTS_MODULE, trip_id, "LIS -> HND", 640.0, "EUR",
        cost_type="per_head", traveler_ids=everyone,
    )
    db.add_line_item(
        ACCOMMODATIONS_MODULE, trip_id, "Alfama apartment", 900.0, "EUR",
        traveler_ids=everyone,
    )
    db.add_line_item(
        ACCOMMODATIONS_MODULE, trip_id, "Shinjuku hotel", 180000.0, "JPY",
        status="shortlisted", traveler_ids=everyone,
    )
    db.add_line_item(
        ITINERARY_MODULE, trip_id, "Sintra day tour", 55.0, "EUR",
        cost_type="per_head", traveler_ids=(alice, bob, carol),
    )
    db.add_line_item(
        ITINERARY_MODULE, trip_id, "Fado dinner", 120.0, "EUR",
        status="draft", traveler_ids=(alice, bob),
    )
    db.add_line_item(
        ADHOC_MODULE, trip_id, "Travel insurance", 210.0, "USD",
        traveler_ids=(alice, bob, carol),
    )
    return trip_id


if __name__ == "__main__":  # pragma: no cover
    from tripcost.core.config import get_settings

    print(seed_demo_trip(get_settings().db_path))  # type: ignore[arg-type]
