"""Data Access Layer for trip cost forecasting and settlement.

Responsibilities
----------------
- Expose the relational interface the core consumes: ``query`` (rows) and
  ``execute`` (row count), plus a ``transaction`` context for multi-statement
  writes.
- Provide minimal helpers for collaborator-owned data (trips, travelers,
  planned line items) so the forecast can read its projections.
- Persist forecast collections (expenses + splits) and expense actuals, always
  scoped to one trip.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence
from datetime import date

from tripcost.models.constants import (
    ADHOC_MODULE,
    COST_TYPES,
    MODULE_TABLES,
    PLANNED_STATUSES,
)

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

# Columns a partial update of an actual may write
ACTUAL_UPDATE_COLUMNS = frozenset(
    {"amount", "date", "paid_by_traveler_id", "payment_method_key", "receipt_url", "notes"}
)

_ACTUALS_SELECT = """
    SELECT
        ea.*,
        e.trip_id,
        e.description AS expense_description,
        e.currency AS expense_currency,
        es.estimated_amount,
        tt.name AS traveler_name,
        payer.name AS paid_by_name
    FROM expense_actuals ea
    JOIN expenses e ON ea.expense_id = e.id
    JOIN trip_travelers tt ON ea.traveler_id = tt.id
    LEFT JOIN trip_travelers payer ON ea.paid_by_traveler_id = payer.id
    LEFT JOIN expense_splits es
        ON es.expense_id = ea.expense_id AND es.traveler_id = ea.traveler_id
"""


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor; commit on success, roll back on any error."""
        conn = self._connect()
        try:
            yield conn.cursor()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self.transaction() as cur:
            cur.execute(sql, tuple(params))
            return [dict(r) for r in cur.fetchall()]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self.transaction() as cur:
            cur.execute(sql, tuple(params))
            return cur.rowcount

    # ------------------------------------------------------------------
    # Metadata
    def get_metadata(self, key: str) -> Optional[str]:
        rows = self.query("SELECT value FROM metadata WHERE key = ?", (key,))
        return rows[0]["value"] if rows else None

    def set_metadata(self, key: str, value: str) -> None:
        self.execute(
            f"""
            INSERT INTO metadata (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = ({UTC_NOW_SQL})
            """,
            (key, value),
        )

    # ------------------------------------------------------------------
    # Collaborator data: trips, travelers, planned line items
    def create_trip(
        self,
        name: str,
        base_currency: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> int:
        with self.transaction() as cur:
            cur.execute(
                f"""
                INSERT INTO trips (name, base_currency, start_date, end_date, created_at, updated_at)
                VALUES (?, ?, ?, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                """,
                (
                    name,
                    base_currency.upper() if base_currency else None,
                    start_date.isoformat() if start_date else None,
                    end_date.isoformat() if end_date else None,
                ),
            )
            return int(cur.lastrowid)

    def get_trip(self, trip_id: int) -> Optional[Dict[str, Any]]:
        rows = self.query("SELECT * FROM trips WHERE id = ?", (trip_id,))
        return rows[0] if rows else None

    def add_traveler(
        self,
        trip_id: int,
        name: str,
        is_cost_sharer: bool = True,
        is_primary: bool = False,
        currency: Optional[str] = None,
    ) -> int:
        with self.transaction() as cur:
            cur.execute(
                """
                INSERT INTO trip_travelers (trip_id, name, is_cost_sharer, is_primary, currency)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    trip_id,
                    name,
                    int(is_cost_sharer),
                    int(is_primary),
                    currency.upper() if currency else None,
                ),
            )
            return int(cur.lastrowid)

    def list_travelers(
        self, trip_id: int, cost_sharers_only: bool = False
    ) -> List[Dict[str, Any]]:
        """Travelers in settlement order: primary first, then name, then id."""
        sql = "SELECT * FROM trip_travelers WHERE trip_id = ?"
        if cost_sharers_only:
            sql += " AND is_cost_sharer = 1"
        sql += " ORDER BY is_primary DESC, name, id"
        return self.query(sql, (trip_id,))

    def get_traveler(self, traveler_id: int) -> Optional[Dict[str, Any]]:
        rows = self.query("SELECT * FROM trip_travelers WHERE id = ?", (traveler_id,))
        return rows[0] if rows else None

    def add_line_item(
        self,
        module: str,
        trip_id: int,
        description: str,
        amount: Optional[float],
        currency: Optional[str],
        cost_type: str = "total",
        status: str = "confirmed",
        traveler_ids: Iterable[int] = (),
        is_active: bool = True,
    ) -> int:
        table = MODULE_TABLES.get(module)
        if table is None:
            raise ValueError(f"Unknown module '{module}'")
        if cost_type not in COST_TYPES:
            raise ValueError(f"Unsupported cost type '{cost_type}'")
        with self.transaction() as cur:
            if module == ADHOC_MODULE:
                cur.execute(
                    """
                    INSERT INTO adhoc_expenses (trip_id, description, amount, currency, cost_type, is_active)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (trip_id, description, amount, currency, cost_type, int(is_active)),
                )
            else:
                if status not in PLANNED_STATUSES:
                    raise ValueError(f"Unsupported status '{status}'")
                cur.execute(
                    f"""
                    INSERT INTO {table} (trip_id, description, amount, currency, cost_type, status)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (trip_id, description, amount, currency, cost_type, status),
                )
            item_id = int(cur.lastrowid)
            cur.executemany(
                "INSERT OR IGNORE INTO line_item_travelers (module, item_id, traveler_id) VALUES (?, ?, ?)",
                [(module, item_id, tid) for tid in traveler_ids],
            )
            return item_id

    def list_line_items(
        self, trip_id: int, module: str, statuses: Iterable[str]
    ) -> List[Dict[str, Any]]:
        """Line items of one module whose (projected) status is in ``statuses``.

        Ad-hoc expenses carry no lifecycle: active ones project as
        ``confirmed``, inactive ones as ``draft``. Each row gains a
        ``traveler_ids`` list.
        """
        table = MODULE_TABLES[module]
        status_list = sorted(set(statuses))
        if not status_list:
            return []
        if module == ADHOC_MODULE:
            source = f"""
                SELECT id, trip_id, description, amount, currency, cost_type,
                       CASE WHEN is_active = 1 THEN 'confirmed' ELSE 'draft' END AS status
                FROM {table}
            """
        else:
            source = f"""
                SELECT id, trip_id, description, amount, currency, cost_type, status
                FROM {table}
            """
        placeholders = ",".join("?" for _ in status_list)
        with self.transaction() as cur:
            cur.execute(
                f"""
                SELECT * FROM ({source})
                WHERE trip_id = ? AND status IN ({placeholders})
                ORDER BY id
                """,
                (trip_id, *status_list),
            )
            items = [dict(r) for r in cur.fetchall()]
            cur.execute(
                """
                SELECT lit.item_id, lit.traveler_id
                FROM line_item_travelers lit
                JOIN trip_travelers tt ON tt.id = lit.traveler_id
                WHERE lit.module = ? AND tt.trip_id = ?
                ORDER BY lit.traveler_id
                """,
                (module, trip_id),
            )
            links: Dict[int, List[int]] = {}
            for r in cur.fetchall():
                links.setdefault(int(r["item_id"]), []).append(int(r["traveler_id"]))
        for item in items:
            item["traveler_ids"] = links.get(int(item["id"]), [])
        return items

    # ------------------------------------------------------------------
    # Forecast collection (expenses + splits)
    def save_forecast_collection(
        self, trip_id: int, expenses: List[Dict[str, Any]]
    ) -> int:
        """Upsert collected expenses, replace their splits, drop stale ones.

        Each expense dict carries the ``expenses`` columns plus a ``splits``
        list of ``(traveler_id, estimated_amount)``. Expense ids stay stable
        across re-collections so existing actuals keep pointing at them.
        Returns the number of stale expenses removed.
        """
        with self.transaction() as cur:
            kept_ids: List[int] = []
            for exp in expenses:
                cur.execute(
                    f"""
                    INSERT INTO expenses (
                        trip_id, module, source_id, description, currency, amount,
                        original_currency, original_amount, exchange_rate, cost_type,
                        headcount, status, rate_missing, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    ON CONFLICT(trip_id, module, source_id) DO UPDATE SET
                        description = excluded.description,
                        currency = excluded.currency,
                        amount = excluded.amount,
                        original_currency = excluded.original_currency,
                        original_amount = excluded.original_amount,
                        exchange_rate = excluded.exchange_rate,
                        cost_type = excluded.cost_type,
                        headcount = excluded.headcount,
                        status = excluded.status,
                        rate_missing = excluded.rate_missing,
                        updated_at = ({UTC_NOW_SQL})
                    """,
                    (
                        trip_id,
                        exp["module"],
                        exp["source_id"],
                        exp["description"],
                        exp["currency"],
                        exp["amount"],
                        exp["original_currency"],
                        exp["original_amount"],
                        exp["exchange_rate"],
                        exp["cost_type"],
                        exp["headcount"],
                        exp["status"],
                        int(exp["rate_missing"]),
                    ),
                )
                cur.execute(
                    "SELECT id FROM expenses WHERE trip_id = ? AND module = ? AND source_id = ?",
                    (trip_id, exp["module"], exp["source_id"]),
                )
                expense_id = int(cur.fetchone()["id"])
                kept_ids.append(expense_id)
                cur.execute(
                    "DELETE FROM expense_splits WHERE expense_id = ?", (expense_id,)
                )
                cur.executemany(
                    """
                    INSERT INTO expense_splits (expense_id, traveler_id, estimated_amount)
                    VALUES (?, ?, ?)
                    """,
                    [(expense_id, tid, amt) for tid, amt in exp["splits"]],
                )

            cur.execute("SELECT id FROM expenses WHERE trip_id = ?", (trip_id,))
            stale = [int(r["id"]) for r in cur.fetchall() if int(r["id"]) not in kept_ids]
            for expense_id in stale:
                cur.execute(
                    "DELETE FROM expense_actuals WHERE expense_id = ?", (expense_id,)
                )
                cur.execute(
                    "DELETE FROM expense_splits WHERE expense_id = ?", (expense_id,)
                )
                cur.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
            return len(stale)

    def list_expenses(self, trip_id: int) -> List[Dict[str, Any]]:
        return self.query(
            "SELECT * FROM expenses WHERE trip_id = ? ORDER BY module, source_id",
            (trip_id,),
        )

    def list_splits(self, trip_id: int) -> List[Dict[str, Any]]:
        return self.query(
            """
            SELECT es.expense_id, es.traveler_id, es.estimated_amount
            FROM expense_splits es
            JOIN expenses e ON es.expense_id = e.id
            WHERE e.trip_id = ?
            ORDER BY es.expense_id, es.traveler_id
            """,
            (trip_id,),
        )

    # ------------------------------------------------------------------
    # Expense actuals
    def transfer_splits_to_actuals(self, trip_id: int) -> int:
        """Create installment 1 for every split lacking one; return rows created.

        The unique index on (expense_id, traveler_id, installment_number)
        turns a concurrent duplicate insert into a no-op.
        """
        with self.transaction() as cur:
            cur.execute(
                """
                SELECT es.expense_id, es.traveler_id, es.estimated_amount
                FROM expense_splits es
                JOIN expenses e ON es.expense_id = e.id
                WHERE e.trip_id = ?
                ORDER BY es.expense_id, es.traveler_id
                """,
                (trip_id,),
            )
            created = 0
            for split in cur.fetchall():
                cur.execute(
                    f"""
                    INSERT INTO expense_actuals (
                        expense_id, traveler_id, installment_number, amount, created_at, updated_at
                    ) VALUES (?, ?, 1, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    ON CONFLICT(expense_id, traveler_id, installment_number) DO NOTHING
                    """,
                    (
                        split["expense_id"],
                        split["traveler_id"],
                        split["estimated_amount"],
                    ),
                )
                created += cur.rowcount
            return created

    def delete_actuals_for_trip(self, trip_id: int) -> int:
        with self.transaction() as cur:
            cur.execute(
                """
                SELECT COUNT(*) FROM expense_actuals
                WHERE expense_id IN (SELECT id FROM expenses WHERE trip_id = ?)
                """,
                (trip_id,),
            )
            count = int(cur.fetchone()[0])
            cur.execute(
                """
                DELETE FROM expense_actuals
                WHERE expense_id IN (SELECT id FROM expenses WHERE trip_id = ?)
                """,
                (trip_id,),
            )
            return count

    def list_actuals(
        self,
        trip_id: int,
        traveler_id: Optional[int] = None,
        paid_by: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        clauses = ["e.trip_id = ?"]
        params: List[Any] = [trip_id]
        if traveler_id is not None:
            clauses.append("ea.traveler_id = ?")
            params.append(traveler_id)
        if paid_by is not None:
            clauses.append("ea.paid_by_traveler_id = ?")
            params.append(paid_by)
        where = " WHERE " + " AND ".join(clauses)
        sql = (
            _ACTUALS_SELECT
            + where
            + " ORDER BY e.description, ea.traveler_id, ea.installment_number"
        )
        return self.query(sql, params)

    def get_actual(self, actual_id: int) -> Optional[Dict[str, Any]]:
        rows = self.query(_ACTUALS_SELECT + " WHERE ea.id = ?", (actual_id,))
        return rows[0] if rows else None

    def update_actual(self, actual_id: int, columns: Mapping[str, Any]) -> bool:
        """Write only the given columns; return False when the row is missing."""
        unknown = set(columns) - ACTUAL_UPDATE_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable on expense_actuals: {sorted(unknown)}")
        if not columns:
            return bool(
                self.query("SELECT 1 FROM expense_actuals WHERE id = ?", (actual_id,))
            )

        assignments = [f"{col} = ?" for col in columns]
        assignments.append(f"updated_at = ({UTC_NOW_SQL})")
        rowcount = self.execute(
            f"UPDATE expense_actuals SET {', '.join(assignments)} WHERE id = ?",
            (*columns.values(), actual_id),
        )
        return rowcount > 0

    # ------------------------------------------------------------------
    # Settlement aggregations (trip scoped)
    def total_estimated(self, trip_id: int) -> float:
        rows = self.query(
            """
            SELECT COALESCE(SUM(es.estimated_amount), 0.0) AS total
            FROM expense_splits es
            JOIN expenses e ON es.expense_id = e.id
            WHERE e.trip_id = ?
            """,
            (trip_id,),
        )
        return float(rows[0]["total"])

    def total_actual(self, trip_id: int, paid: bool = True) -> float:
        """Sum of actuals with (``paid=True``) or without a recorded payer."""
        payer_clause = "IS NOT NULL" if paid else "IS NULL"
        rows = self.query(
            f"""
            SELECT COALESCE(SUM(ea.amount), 0.0) AS total
            FROM expense_actuals ea
            JOIN expenses e ON ea.expense_id = e.id
            WHERE e.trip_id = ? AND ea.paid_by_traveler_id {payer_clause}
            """,
            (trip_id,),
        )
        return float(rows[0]["total"])

    def traveler_payment_totals(self, trip_id: int) -> List[Dict[str, Any]]:
        """``should_pay`` / ``actually_paid`` per traveler, in settlement order.

        Covers cost-sharers plus anyone who paid or owes a paid actual, so the
        balances of the returned rows always net to zero.
        """
        return self.query(
            """
            SELECT
                tt.id AS traveler_id,
                tt.name AS traveler_name,
                tt.is_primary,
                COALESCE((
                    SELECT SUM(ea.amount)
                    FROM expense_actuals ea
                    JOIN expenses e ON ea.expense_id = e.id
                    WHERE e.trip_id = tt.trip_id
                      AND ea.traveler_id = tt.id
                      AND ea.paid_by_traveler_id IS NOT NULL
                ), 0.0) AS should_pay,
                COALESCE((
                    SELECT SUM(ea.amount)
                    FROM expense_actuals ea
                    JOIN expenses e ON ea.expense_id = e.id
                    WHERE e.trip_id = tt.trip_id
                      AND ea.paid_by_traveler_id = tt.id
                ), 0.0) AS actually_paid
            FROM trip_travelers tt
            WHERE tt.trip_id = ?
              AND (
                tt.is_cost_sharer = 1
                OR EXISTS (
                    SELECT 1 FROM expense_actuals ea WHERE ea.paid_by_traveler_id = tt.id
                )
                OR EXISTS (
                    SELECT 1
                    FROM expense_actuals ea
                    JOIN expenses e ON ea.expense_id = e.id
                    WHERE e.trip_id = tt.trip_id
                      AND ea.traveler_id = tt.id
                      AND ea.paid_by_traveler_id IS NOT NULL
                )
              )
            ORDER BY tt.is_primary DESC, tt.name, tt.id
            """,
            (trip_id,),
        )


__all__ = ["ACTUAL_UPDATE_COLUMNS", "Database"]
