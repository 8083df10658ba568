"""
Repository for subjects (owned collectibles).

Subject reads join ``catalog_entries`` so that the returned ``Subject``
carries its linked catalog product id and names.

Value-changing writes (``update_valuation``, ``apply_override``) capture the
previous ``current_value_cents`` into ``original_value_cents`` the first time
and leave it alone afterwards.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from valuation_engine.db.repositories.base import BaseRepository
from valuation_engine.models.subject import Subject
from valuation_engine.taxonomy.valuation_taxonomy import ValueSource
from valuation_engine.utils.time_utils import from_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

_SELECT_SUBJECT = """
    SELECT s.*,
           c.provider_product_id AS catalog_product_id,
           c.display_name        AS catalog_name,
           c.secondary_name      AS catalog_secondary_name
    FROM subjects s
    LEFT JOIN catalog_entries c ON c.catalog_id = s.catalog_entry_id
"""

_UPDATE_VALUE = """
    UPDATE subjects
    SET original_value_cents = COALESCE(original_value_cents, current_value_cents),
        current_value_cents  = ?,
        value_source         = ?,
        value_confidence     = ?,
        value_updated_at     = ?,
        updated_at           = ?
    WHERE subject_id = ?;
"""


class SubjectRepository(BaseRepository):
    """Read/write access to the ``subjects`` table."""

    def insert(self, subject: Subject) -> int:
        """Insert a new subject and return its ``subject_id``."""
        self.execute(
            """
            INSERT INTO subjects
                (title, category, condition, catalog_entry_id,
                 current_value_cents, value_source, value_confidence)
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                subject.title,
                subject.category.value,
                subject.condition.value,
                subject.catalog_entry_id,
                subject.current_value_cents,
                subject.value_source.value,
                subject.value_confidence,
            ),
        )
        return self.last_insert_rowid()

    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        row = self.fetchone(f"{_SELECT_SUBJECT} WHERE s.subject_id = ?;", (subject_id,))
        return _row_to_subject(row) if row else None

    def list_all(self) -> list[Subject]:
        rows = self.fetchall(f"{_SELECT_SUBJECT} ORDER BY s.subject_id;")
        return [_row_to_subject(r) for r in rows]

    def update_valuation(
        self,
        subject_id: int,
        value_cents: int,
        source: ValueSource,
        confidence: Optional[int],
        now: Optional[datetime] = None,
    ) -> bool:
        """Store a completed valuation on the subject.

        Returns:
            ``True`` if a row was updated.
        """
        stamp = to_iso(now or utcnow())
        cursor = self.execute(
            _UPDATE_VALUE,
            (value_cents, ValueSource(source).value, confidence, stamp, stamp, subject_id),
        )
        return cursor.rowcount > 0

    def apply_override(
        self,
        subject_id: int,
        value_cents: int,
        now: Optional[datetime] = None,
    ) -> bool:
        """Set a user-chosen value; confidence is cleared."""
        if value_cents < 0:
            raise ValueError(f"Override value must be >= 0, got {value_cents}.")
        return self.update_valuation(
            subject_id, value_cents, ValueSource.USER_OVERRIDE, None, now=now
        )

    def link_catalog_entry(
        self,
        subject_id: int,
        catalog_entry_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> bool:
        cursor = self.execute(
            "UPDATE subjects SET catalog_entry_id = ?, updated_at = ? WHERE subject_id = ?;",
            (catalog_entry_id, to_iso(now or utcnow()), subject_id),
        )
        return cursor.rowcount > 0


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_subject(row: sqlite3.Row) -> Subject:
    return Subject(
        subject_id=row["subject_id"],
        title=row["title"],
        category=row["category"],
        condition=row["condition"],
        catalog_entry_id=row["catalog_entry_id"],
        catalog_product_id=row["catalog_product_id"],
        catalog_name=row["catalog_name"],
        catalog_secondary_name=row["catalog_secondary_name"],
        current_value_cents=row["current_value_cents"],
        value_source=row["value_source"],
        value_confidence=row["value_confidence"],
        original_value_cents=row["original_value_cents"],
        value_updated_at=from_iso(row["value_updated_at"]),
    )
