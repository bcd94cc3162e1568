import sqlite3

from tripcost.db.dal import Database
from tripcost.db.migrate import CURRENT_SCHEMA_VERSION, apply_migrations
from tripcost.db.seed import seed_demo_trip


def _columns(path, table):
    with sqlite3.connect(path) as conn:
        return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def _indexes(path, table):
    with sqlite3.connect(path) as conn:
        return {row[1] for row in conn.execute(f"PRAGMA index_list({table})")}


def test_fresh_database_reaches_current_version(tmp_path):
    path = tmp_path / "fresh.sqlite3"
    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION
    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION
    assert Database(path).get_metadata("schema_version") == str(CURRENT_SCHEMA_VERSION)
    assert "uq_actuals_installment" in _indexes(path, "expense_actuals")
    assert "base_currency" in _columns(path, "trips")


def test_v2_removes_duplicate_installments(tmp_path):
    path = tmp_path / "legacy.sqlite3"
    apply_migrations(path)
    db = Database(path)
    trip_id = db.create_trip("Legacy")
    alice = db.add_traveler(trip_id, "Alice", is_primary=True)

    with sqlite3.connect(path) as conn:
        conn.execute("DROP INDEX uq_actuals_installment")
        conn.execute(
            """
            INSERT INTO expenses (trip_id, module, source_id, description, currency, amount,
                                  original_currency, original_amount, cost_type, status)
            VALUES (?, 'adhoc', 1, 'Dinner', 'USD', 40, 'USD', 40, 'total', 'confirmed')
            """,
            (trip_id,),
        )
        expense_id = conn.execute("SELECT id FROM expenses").fetchone()[0]
        for amount in (40, 40, 41):
            conn.execute(
                "INSERT INTO expense_actuals (expense_id, traveler_id, installment_number, amount)"
                " VALUES (?, ?, 1, ?)",
                (expense_id, alice, amount),
            )
        conn.execute("UPDATE metadata SET value = '1' WHERE key = 'schema_version'")

    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION

    rows = db.query("SELECT id, amount FROM expense_actuals")
    assert len(rows) == 1
    assert rows[0]["amount"] == 40
    assert "uq_actuals_installment" in _indexes(path, "expense_actuals")


def test_v3_adds_trip_base_currency(tmp_path):
    path = tmp_path / "old_trips.sqlite3"
    with sqlite3.connect(path) as conn:
        conn.execute(
            """
            CREATE TABLE trips (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                start_date TEXT,
                end_date TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                created_at TEXT NOT NULL DEFAULT '',
                updated_at TEXT NOT NULL DEFAULT ''
            )
            """
        )
        conn.execute("INSERT INTO trips (name) VALUES ('Old trip')")

    apply_migrations(path)

    assert "base_currency" in _columns(path, "trips")
    assert Database(path).get_trip(1)["name"] == "Old trip"


def test_seed_demo_trip(tmp_path):
    path = tmp_path / "seed.sqlite3"
    trip_id = seed_demo_trip(path)
    db = Database(path)
    assert db.get_trip(trip_id)["base_currency"] == "USD"
    assert len(db.list_travelers(trip_id, cost_sharers_only=True)) == 3
    assert len(db.list_line_items(trip_id, "flights", {"confirmed"})) == 1
