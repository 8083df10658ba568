"""
Sequential schema migrations.

A ``schema_versions`` table records applied migration ids; ``run_migrations()``
applies every entry of ``MIGRATIONS`` (insertion order) not yet recorded.
The base tables come from ``apply_schema()``; migrations only carry
incremental changes on top of it.

Adding a migration: define ``migration_NNNN_description(conn)`` and register
it in ``MIGRATIONS`` under ``"NNNN_description"``.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    """Create the ``schema_versions`` tracking table if it does not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_versions (
            version_id  TEXT    NOT NULL PRIMARY KEY,
            applied_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            description TEXT
        );
    """)
    conn.commit()


def _get_applied_versions(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT version_id FROM schema_versions;").fetchall()
    return {row["version_id"] for row in rows}


def _mark_applied(conn: sqlite3.Connection, version_id: str, description: str) -> None:
    conn.execute(
        "INSERT INTO schema_versions(version_id, description) VALUES (?, ?);",
        (version_id, description),
    )
    conn.commit()


# ── Migration functions ────────────────────────────────────────────────────────

def migration_0001_baseline(conn: sqlite3.Connection) -> None:
    """Baseline marker; the tables themselves come from ``apply_schema()``."""


def migration_0002_cache_expiry_index(conn: sqlite3.Connection) -> None:
    """Index ``valuation_cache.expires_at`` for live-entry counts and invalidation."""
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_cache_subject_expires "
        "ON valuation_cache(subject_key, expires_at);"
    )
    conn.commit()


MIGRATIONS: dict[str, tuple[MigrationFn, str]] = {
    "0001_baseline": (
        migration_0001_baseline,
        "Baseline: catalog_entries, subjects, valuation_cache",
    ),
    "0002_cache_expiry_index": (
        migration_0002_cache_expiry_index,
        "Add (subject_key, expires_at) index to valuation_cache",
    ),
}


def run_migrations(conn: sqlite3.Connection) -> int:
    """Apply all pending migrations and return how many were applied."""
    _ensure_version_table(conn)
    applied = _get_applied_versions(conn)

    count = 0
    for version_id, (fn, description) in MIGRATIONS.items():
        if version_id in applied:
            logger.debug("Migration %s already applied; skipping.", version_id)
            continue

        logger.info("Applying migration %s: %s", version_id, description)
        try:
            fn(conn)
            _mark_applied(conn, version_id, description)
            count += 1
        except Exception as exc:
            conn.rollback()
            logger.error("Migration %s FAILED: %s", version_id, exc)
            raise

    if count:
        logger.info("Applied %d migration(s).", count)
    else:
        logger.debug("No pending migrations.")

    return count
