"""
Repository for catalog entries (products subjects can be linked to).
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from valuation_engine.db.repositories.base import BaseRepository
from valuation_engine.models.subject import CatalogEntry
from valuation_engine.utils.time_utils import to_iso, utcnow

logger = logging.getLogger(__name__)


class CatalogRepository(BaseRepository):
    """Read/write access to the ``catalog_entries`` table."""

    def upsert_by_provider_id(
        self,
        provider_product_id: str,
        display_name: str,
        secondary_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[int, bool]:
        """Insert a catalog entry, or refresh the names of an existing one.

        Returns:
            ``(catalog_id, created)`` where ``created`` is ``True`` when a new
            row was inserted.
        """
        entry = CatalogEntry(
            provider_product_id=provider_product_id,
            display_name=display_name,
            secondary_name=secondary_name,
        )
        stamp = to_iso(now or utcnow())

        existing = self.get_by_provider_id(entry.provider_product_id)
        if existing is not None:
            self.execute(
                """
                UPDATE catalog_entries
                SET display_name = ?, secondary_name = ?, updated_at = ?
                WHERE catalog_id = ?;
                """,
                (entry.display_name, entry.secondary_name, stamp, existing.catalog_id),
            )
            if existing.catalog_id is None:
                raise ValueError(f"Catalog entry for {provider_product_id!r} has no id")
            return existing.catalog_id, False

        self.execute(
            """
            INSERT INTO catalog_entries
                (provider_product_id, display_name, secondary_name, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            (entry.provider_product_id, entry.display_name, entry.secondary_name, stamp, stamp),
        )
        catalog_id = self.last_insert_rowid()
        logger.debug("Created catalog entry %d for product %s", catalog_id, provider_product_id)
        return catalog_id, True

    def get_by_id(self, catalog_id: int) -> Optional[CatalogEntry]:
        row = self.fetchone(
            "SELECT * FROM catalog_entries WHERE catalog_id = ?;", (catalog_id,)
        )
        return _row_to_entry(row) if row else None

    def get_by_provider_id(self, provider_product_id: str) -> Optional[CatalogEntry]:
        row = self.fetchone(
            "SELECT * FROM catalog_entries WHERE provider_product_id = ?;",
            (provider_product_id.strip(),),
        )
        return _row_to_entry(row) if row else None


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_entry(row: sqlite3.Row) -> CatalogEntry:
    return CatalogEntry(
        catalog_id=row["catalog_id"],
        provider_product_id=row["provider_product_id"],
        display_name=row["display_name"],
        secondary_name=row["secondary_name"],
    )
