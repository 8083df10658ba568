"""
Valuation cache interface and an in-process implementation.

``ValuationCache`` is the contract the orchestrator, writer and service
depend on. Entries are keyed by ``(subject_key, purpose_tag)``, where the
purpose tag is ``"consolidated"`` or a provider name. Several entries may
exist for one key; readers take the most recent by ``fetched_at`` among
those with ``expires_at > now``. Expired entries are never returned.

Implementations:
  - ``SQLiteValuationCache`` (``db/repositories/valuation_cache_repo.py``):
    durable, doubles as the audit trail.
  - ``InMemoryValuationCache`` (below): process-local, for tests and dry runs.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Optional, Protocol

from valuation_engine.models.valuation import CacheEntry, CacheStats
from valuation_engine.utils.time_utils import utcnow


class ValuationCache(Protocol):
    """TTL cache of valuations, append-only apart from invalidation."""

    def get(
        self, subject_key: str, purpose_tag: str, now: Optional[datetime] = None
    ) -> Optional[CacheEntry]: ...

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
    ) -> CacheEntry: ...

    def invalidate(self, subject_key: str, now: Optional[datetime] = None) -> int: ...

    def history(self, subject_key: str, limit: int = 50) -> list[CacheEntry]: ...

    def stats(self, now: Optional[datetime] = None) -> CacheStats: ...


class InMemoryValuationCache:
    """Thread-safe in-memory ``ValuationCache``."""

    def __init__(self) -> None:
        self._entries: list[CacheEntry] = []
        self._lock = threading.RLock()
        self._next_id = 1

    def get(
        self, subject_key: str, purpose_tag: str, now: Optional[datetime] = None
    ) -> Optional[CacheEntry]:
        now = now or utcnow()
        with self._lock:
            live = [
                e for e in self._entries
                if e.subject_key == subject_key
                and e.purpose_tag == purpose_tag
                and e.is_live(now)
            ]
        if not live:
            return None
        return max(live, key=lambda e: (e.fetched_at, e.entry_id or 0))

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
        with self._lock:
            entry = CacheEntry(
                entry_id=self._next_id,
                subject_key=subject_key,
                purpose_tag=purpose_tag,
                value_cents=value_cents,
                confidence=confidence,
                sample_size=sample_size,
                raw_payload=raw_payload,
                fetched_at=fetched_at,
                expires_at=fetched_at + ttl,
            )
            self._next_id += 1
            self._entries.append(entry)
        return entry

    def invalidate(self, subject_key: str, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        count = 0
        with self._lock:
            for i, entry in enumerate(self._entries):
                if entry.subject_key == subject_key and entry.is_live(now):
                    self._entries[i] = entry.model_copy(update={"expires_at": now})
                    count += 1
        return count

    def history(self, subject_key: str, limit: int = 50) -> list[CacheEntry]:
        with self._lock:
            matching = [e for e in self._entries if e.subject_key == subject_key]
        matching.sort(key=lambda e: (e.fetched_at, e.entry_id or 0), reverse=True)
        return matching[:limit]

    def stats(self, now: Optional[datetime] = None) -> CacheStats:
        now = now or utcnow()
        with self._lock:
            entries = list(self._entries)
        return CacheStats(
            total_entries=len(entries),
            live_entries=sum(1 for e in entries if e.is_live(now)),
            distinct_subjects=len({e.subject_key for e in entries}),
        )
