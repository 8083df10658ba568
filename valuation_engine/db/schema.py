"""
SQLite schema DDL for the valuation store.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Table creation order respects foreign key dependencies:
  1. catalog_entries   (no FKs)
  2. subjects          (→ catalog_entries)
  3. valuation_cache   (keyed by subject_key text; no FK so audit rows
                        survive subject deletion)

Timestamps are ISO-8601 strings written by the application with a fixed
microsecond precision (see ``utils.time_utils.to_iso``) so that string
comparison in SQL orders them chronologically.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_CATALOG_ENTRIES = """
CREATE TABLE IF NOT EXISTS catalog_entries (
    catalog_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    provider_product_id TEXT    NOT NULL UNIQUE,
    display_name        TEXT    NOT NULL,
    secondary_name      TEXT,
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_SUBJECTS = """
CREATE TABLE IF NOT EXISTS subjects (
    subject_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    title                TEXT    NOT NULL,
    category             TEXT    NOT NULL DEFAULT 'other',
    condition            TEXT    NOT NULL DEFAULT 'OTHER',
    catalog_entry_id     INTEGER REFERENCES catalog_entries(catalog_id),
    current_value_cents  INTEGER NOT NULL DEFAULT 0,
    value_source         TEXT    NOT NULL DEFAULT 'user_defined',
    value_confidence     INTEGER,
    original_value_cents INTEGER,
    value_updated_at     TEXT,
    created_at           TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at           TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_SUBJECTS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_subjects_catalog
    ON subjects(catalog_entry_id);
"""

_DDL_VALUATION_CACHE = """
CREATE TABLE IF NOT EXISTS valuation_cache (
    entry_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_key  TEXT    NOT NULL,
    purpose_tag  TEXT    NOT NULL,
    value_cents  INTEGER NOT NULL,
    confidence   INTEGER,
    sample_size  INTEGER,
    raw_payload  TEXT,
    fetched_at   TEXT    NOT NULL,
    expires_at   TEXT    NOT NULL
);
"""

_DDL_VALUATION_CACHE_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_cache_subject_purpose_fetched
    ON valuation_cache(subject_key, purpose_tag, fetched_at DESC);
"""

# ── Ordered list of all DDL to apply ──────────────────────────────────────────

_ALL_DDL: list[str] = [
    _DDL_CATALOG_ENTRIES,
    _DDL_SUBJECTS,
    _DDL_SUBJECTS_INDEXES,
    _DDL_VALUATION_CACHE,
    _DDL_VALUATION_CACHE_INDEXES,
]

ALL_TABLE_NAMES = [
    "catalog_entries",
    "subjects",
    "valuation_cache",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``. Idempotent."""
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Return index names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
