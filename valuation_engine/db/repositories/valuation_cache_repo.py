"""
Durable valuation cache backed by the ``valuation_cache`` table.

Rows are inserted, never rewritten, except that ``invalidate()`` pulls a
subject's live rows' ``expires_at`` back to "now". The table therefore doubles
as the valuation audit trail surfaced by ``history()``.

Each ``put``/``invalidate`` commits immediately so a cached answer is durable
as soon as the call returns.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from valuation_engine.db.repositories.base import BaseRepository
from valuation_engine.models.valuation import CacheEntry, CacheStats
from valuation_engine.utils.time_utils import from_iso, to_iso, utcnow

logger = logging.getLogger(__name__)


class SQLiteValuationCache(BaseRepository):
    """``ValuationCache`` implementation over SQLite."""

    def get(
        self,
        subject_key: str,
        purpose_tag: str,
        now: Optional[datetime] = None,
    ) -> Optional[CacheEntry]:
        """Most recent live entry for ``(subject_key, purpose_tag)``, or ``None``."""
        row = self.fetchone(
            """
            SELECT * FROM valuation_cache
            WHERE subject_key = ? AND purpose_tag = ? AND expires_at > ?
            ORDER BY fetched_at DESC, entry_id DESC
            LIMIT 1;
            """,
            (subject_key, purpose_tag, to_iso(now or utcnow())),
        )
        return _row_to_entry(row) if row else None

    def put(
        self,
        subject_key: str,
        purpose_tag: str,
        value_cents: int,
        confidence: Optional[int],
        sample_size: Optional[int],
        raw_payload: Optional[str],
        ttl: timedelta,
        now: Optional[datetime] = None,
    ) -> CacheEntry:
        fetched_at = now or utcnow()
        entry = CacheEntry(
            subject_key=subject_key,
            purpose_tag=purpose_tag,
            value_cents=value_cents,
            confidence=confidence,
            sample_size=sample_size,
            raw_payload=raw_payload,
            fetched_at=fetched_at,
            expires_at=fetched_at + ttl,
        )
        self.execute(
            """
            INSERT INTO valuation_cache
                (subject_key, purpose_tag, value_cents, confidence, sample_size,
                 raw_payload, fetched_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                entry.subject_key,
                entry.purpose_tag,
                entry.value_cents,
                entry.confidence,
                entry.sample_size,
                entry.raw_payload,
                to_iso(entry.fetched_at),
                to_iso(entry.expires_at),
            ),
        )
        entry_id = self.last_insert_rowid()
        self.commit()
        return entry.model_copy(update={"entry_id": entry_id})

    def invalidate(self, subject_key: str, now: Optional[datetime] = None) -> int:
        """Expire every live entry for the subject; returns how many were expired."""
        stamp = to_iso(now or utcnow())
        cursor = self.execute(
            "UPDATE valuation_cache SET expires_at = ? WHERE subject_key = ? AND expires_at > ?;",
            (stamp, subject_key, stamp),
        )
        self.commit()
        if cursor.rowcount:
            logger.debug("Invalidated %d cache entries for subject %s", cursor.rowcount, subject_key)
        return cursor.rowcount

    def history(self, subject_key: str, limit: int = 50) -> list[CacheEntry]:
        rows = self.fetchall(
            """
            SELECT * FROM valuation_cache
            WHERE subject_key = ?
            ORDER BY fetched_at DESC, entry_id DESC
            LIMIT ?;
            """,
            (subject_key, limit),
        )
        return [_row_to_entry(r) for r in rows]

    def stats(self, now: Optional[datetime] = None) -> CacheStats:
        row = self.fetchone(
            """
            SELECT COUNT(*)                                     AS total,
                   COALESCE(SUM(CASE WHEN expires_at > ? THEN 1 ELSE 0 END), 0) AS live,
                   COUNT(DISTINCT subject_key)                  AS subjects
            FROM valuation_cache;
            """,
            (to_iso(now or utcnow()),),
        )
        if row is None:
            raise sqlite3.DatabaseError("valuation_cache stats query returned no row")
        return CacheStats(
            total_entries=int(row["total"]),
            live_entries=int(row["live"]),
            distinct_subjects=int(row["subjects"]),
        )


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
    return CacheEntry(
        entry_id=row["entry_id"],
        subject_key=row["subject_key"],
        purpose_tag=row["purpose_tag"],
        value_cents=row["value_cents"],
        confidence=row["confidence"],
        sample_size=row["sample_size"],
        raw_payload=row["raw_payload"],
        fetched_at=from_iso(row["fetched_at"]),
        expires_at=from_iso(row["expires_at"]),
    )
