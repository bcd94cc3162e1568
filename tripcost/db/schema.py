"""Database schema DDL definitions and initialization utilities.

Tables:
  - trips: high-level trip records (owned by the trip collaborator)
  - trip_travelers: travelers per trip with cost-sharing / primary flags
  - flights, accommodations, itinerary_activities, adhoc_expenses: planned
    line items projected from the planning modules
  - line_item_travelers: which travelers a planned line item applies to
  - expenses: one row per collected line item, amounts in trip base currency
  - expense_splits: per-traveler estimated share of an expense
  - expense_actuals: recorded payment obligations (installments)
  - metadata: key/value store (schema version, overrides, forecast info)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

TRIPS_DDL = f"""
CREATE TABLE IF NOT EXISTS trips (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    base_currency TEXT, -- trip default when no primary traveler currency
    start_date TEXT,
    end_date TEXT,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active','archived')),
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

TRAVELERS_DDL = """
CREATE TABLE IF NOT EXISTS trip_travelers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    trip_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    is_cost_sharer INTEGER NOT NULL DEFAULT 1,
    is_primary INTEGER NOT NULL DEFAULT 0,
    currency TEXT,
    FOREIGN KEY (trip_id) REFERENCES trips(id) ON DELETE CASCADE
);
"""


def _planned_items_ddl(table: str) -> str:
    return f"""
CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    trip_id INTEGER NOT NULL,
    description TEXT NOT NULL,
    amount REAL,
    currency TEXT,
    cost_type TEXT NOT NULL DEFAULT 'total' CHECK (cost_type IN ('total','per_head')),
    status TEXT NOT NULL DEFAULT 'draft', -- draft | shortlisted | confirmed | not_selected
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (trip_id) REFERENCES trips(id) ON DELETE CASCADE
);
"""


FLIGHTS_DDL = _planned_items_ddl("flights")
ACCOMMODATIONS_DDL = _planned_items_ddl("accommodations")
ITINERARY_DDL = _planned_items_ddl("itinerary_activities")

ADHOC_EXPENSES_DDL = f"""
CREATE TABLE IF NOT EXISTS adhoc_expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    trip_id INTEGER NOT NULL,
    description TEXT NOT NULL,
    amount REAL,
    currency TEXT,
    cost_type TEXT NOT NULL DEFAULT 'total' CHECK (cost_type IN ('total','per_head')),
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (trip_id) REFERENCES trips(id) ON DELETE CASCADE
);
"""

LINE_ITEM_TRAVELERS_DDL = """
CREATE TABLE IF NOT EXISTS line_item_travelers (
    module TEXT NOT NULL, -- 'flights' | 'accommodations' | 'itinerary' | 'adhoc'
    item_id INTEGER NOT NULL,
    traveler_id INTEGER NOT NULL,
    PRIMARY KEY (module, item_id, traveler_id),
    FOREIGN KEY (traveler_id) REFERENCES trip_travelers(id) ON DELETE CASCADE
);
"""

EXPENSES_DDL = f"""
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    trip_id INTEGER NOT NULL,
    module TEXT NOT NULL,
    source_id INTEGER NOT NULL,
    description TEXT NOT NULL,
    currency TEXT NOT NULL, -- trip base currency
    amount REAL NOT NULL, -- converted total, 2 dp
    original_currency TEXT NOT NULL,
    original_amount REAL NOT NULL, -- after per-head expansion
    exchange_rate REAL, -- NULL when the rate was unavailable
    cost_type TEXT NOT NULL,
    headcount INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL,
    rate_missing INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    UNIQUE(trip_id, module, source_id),
    FOREIGN KEY (trip_id) REFERENCES trips(id) ON DELETE CASCADE
);
"""

EXPENSE_SPLITS_DDL = """
CREATE TABLE IF NOT EXISTS expense_splits (
    expense_id INTEGER NOT NULL,
    traveler_id INTEGER NOT NULL,
    estimated_amount REAL NOT NULL,
    PRIMARY KEY (expense_id, traveler_id),
    FOREIGN KEY (expense_id) REFERENCES expenses(id) ON DELETE CASCADE,
    FOREIGN KEY (traveler_id) REFERENCES trip_travelers(id)
);
"""

EXPENSE_ACTUALS_DDL = f"""
CREATE TABLE IF NOT EXISTS expense_actuals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expense_id INTEGER NOT NULL,
    traveler_id INTEGER NOT NULL,
    installment_number INTEGER NOT NULL DEFAULT 1,
    amount REAL NOT NULL,
    date TEXT, -- ISO date (YYYY-MM-DD)
    paid_by_traveler_id INTEGER,
    payment_method_key TEXT,
    receipt_url TEXT,
    notes TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (expense_id) REFERENCES expenses(id) ON DELETE CASCADE,
    FOREIGN KEY (traveler_id) REFERENCES trip_travelers(id),
    FOREIGN KEY (paid_by_traveler_id) REFERENCES trip_travelers(id)
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

TRAVELERS_TRIP_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_travelers_trip ON trip_travelers(trip_id);"
)
EXPENSES_TRIP_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_trip ON expenses(trip_id);"
)
ACTUALS_PAYER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_actuals_payer ON expense_actuals(paid_by_traveler_id);"
)
ACTUALS_UNIQUE_INDEX_DDL = """
CREATE UNIQUE INDEX IF NOT EXISTS uq_actuals_installment
ON expense_actuals(expense_id, traveler_id, installment_number);
"""

DDL_ORDER: Sequence[str] = (
    TRIPS_DDL,
    TRAVELERS_DDL,
    FLIGHTS_DDL,
    ACCOMMODATIONS_DDL,
    ITINERARY_DDL,
    ADHOC_EXPENSES_DDL,
    LINE_ITEM_TRAVELERS_DDL,
    EXPENSES_DDL,
    EXPENSE_SPLITS_DDL,
    EXPENSE_ACTUALS_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        _ensure_indexes(cur)
        conn.commit()
    finally:
        conn.close()


def _ensure_indexes(cur: sqlite3.Cursor) -> None:
    """Create indexes, tolerating legacy actuals that still hold duplicates."""
    for ddl in (
        TRAVELERS_TRIP_INDEX_DDL,
        EXPENSES_TRIP_INDEX_DDL,
        ACTUALS_PAYER_INDEX_DDL,
        ACTUALS_UNIQUE_INDEX_DDL,
    ):
        try:
            cur.execute(ddl)
        except sqlite3.IntegrityError:
            # Duplicate installments; migration v2 de-duplicates then retries.
            continue
