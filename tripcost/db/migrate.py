"""Database migration utilities.

Handles schema evolution by applying idempotent migrations keyed by an integer
`schema_version` stored in the metadata table. Each migration upgrades the
SQLite schema in-place while preserving user data.
"""

from __future__ import annotations
from pathlib import Path
import logging
import sqlite3
from typing import Optional

from . import schema as schema_def
from .schema import init_db

CURRENT_SCHEMA_VERSION = 3
SCHEMA_VERSION_KEY = "schema_version"

logger = logging.getLogger("tripcost.db.migrate")


def _get_schema_version(conn: sqlite3.Connection) -> Optional[int]:
    try:
        cur = conn.cursor()
        cur.execute("SELECT value FROM metadata WHERE key=?", (SCHEMA_VERSION_KEY,))
        row = cur.fetchone()
        if row:
            return int(row[0])
    except sqlite3.OperationalError:
        # metadata table may not exist yet (first run before init_db)
        return None
    return None


def apply_migrations(db_path: Path) -> int:
    """Apply required migrations and return resulting schema version."""
    init_db(db_path)
    conn = sqlite3.connect(db_path)
    try:
        version = _get_schema_version(conn) or 1
        if version < 2:
            _migrate_to_v2(conn)
            version = 2
        if version < 3:
            _migrate_to_v3(conn)
            version = 3
        _set_schema_version(conn, version)
        conn.commit()
        return version
    finally:
        conn.close()


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO metadata (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
        f"updated_at=({schema_def.BASIC_UTC_NOW})",
        (SCHEMA_VERSION_KEY, str(version)),
    )


def _migrate_to_v2(conn: sqlite3.Connection) -> None:
    """Upgrade schema to version 2 (one installment row per expense/traveler/number).

    Older databases were written with an application-level existence check only,
    so concurrent transfers may have left duplicate installment rows. Keep the
    oldest row of every group, then enforce uniqueness at the storage layer.
    """
    cur = conn.cursor()
    try:
        cur.execute(
            """
            DELETE FROM expense_actuals
            WHERE id NOT IN (
                SELECT MIN(id) FROM expense_actuals
                GROUP BY expense_id, traveler_id, installment_number
            )
            """
        )
        if cur.rowcount:
            logger.warning("removed %d duplicate expense_actuals rows", cur.rowcount)
        cur.execute(schema_def.ACTUALS_UNIQUE_INDEX_DDL)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _migrate_to_v3(conn: sqlite3.Connection) -> None:
    """Upgrade schema to version 3 (per-trip default base currency)."""
    cur = conn.cursor()
    try:
        if not _column_exists(cur, "trips", "base_currency"):
            cur.execute("ALTER TABLE trips ADD COLUMN base_currency TEXT")
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _column_exists(cur: sqlite3.Cursor, table: str, column: str) -> bool:
    cur.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cur.fetchall())
