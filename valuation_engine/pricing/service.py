"""
Valuation service: the operations callers use.

``refresh_valuation`` state machine::

    START → CACHE_CHECK ─ hit ──────────────────────────────→ DONE (source "cached")
                        └ miss → FAN_OUT → CONSOLIDATE ─ ok ─→ PERSIST → DONE
                                                      └ none → DONE (failure)

Fallback mode: when the catalog adapter is the only configured source, the
single catalog price is stored under the ``"pricecharting"`` tag and the
subject's source becomes ``"api"`` instead of ``"consolidated"``.

No operation here raises for a missing subject or an empty fan-out; both are
returned as failure results, and a failed attempt never touches the subject.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

import httpx

from valuation_engine.config import AppConfig
from valuation_engine.db.repositories.catalog_repo import CatalogRepository
from valuation_engine.db.repositories.subject_repo import SubjectRepository
from valuation_engine.db.repositories.valuation_cache_repo import SQLiteValuationCache
from valuation_engine.models.results import (
    CatalogSearchHit,
    ConsolidatedResult,
    LinkResult,
    RefreshResult,
)
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import (
    CacheEntry,
    CacheStats,
    ConsolidatedValuation,
    SourceObservation,
)
from valuation_engine.pricing.cache import ValuationCache
from valuation_engine.pricing.consolidator import consolidate
from valuation_engine.pricing.errors import SubjectNotFoundError
from valuation_engine.pricing.orchestrator import FanOutOrchestrator, FanOutResult
from valuation_engine.pricing.writer import CONSOLIDATED_TAG, ValuationWriter
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.sources.pricecharting import PriceChartingAdapter
from valuation_engine.sources.registry import build_adapters
from valuation_engine.taxonomy.valuation_taxonomy import Provider, ValueSource
from valuation_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CACHED_MESSAGE = "Using cached valuation"
NO_SOURCES = "No pricing sources available"


class ValuationService:
    """Facade over cache, orchestrator, consolidator and writer."""

    def __init__(
        self,
        subjects: SubjectRepository,
        catalog: CatalogRepository,
        cache: ValuationCache,
        adapters: Sequence[SourceAdapter],
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.subjects = subjects
        self.catalog = catalog
        self.cache = cache
        self.adapters = list(adapters)
        self.config = config
        self._client = client
        self.orchestrator = FanOutOrchestrator(self.adapters, cache, config.cache, client=client)
        self.writer = ValuationWriter(cache, subjects, config.cache)

    @classmethod
    def from_connection(
        cls,
        conn: sqlite3.Connection,
        config: AppConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "ValuationService":
        """Wire the SQLite repositories and the configured adapters together."""
        return cls(
            subjects=SubjectRepository(conn),
            catalog=CatalogRepository(conn),
            cache=SQLiteValuationCache(conn),
            adapters=build_adapters(config.sources),
            config=config,
            client=client,
        )

    # ── Valuation ──────────────────────────────────────────────────────────────

    def is_fallback_mode(self) -> bool:
        """True when the catalog adapter is the only configured source."""
        available = [a for a in self.adapters if a.is_available()]
        return len(available) == 1 and available[0].provider == Provider.PRICECHARTING

    async def refresh_valuation(
        self, subject_id: int, now: Optional[datetime] = None
    ) -> RefreshResult:
        now = now or utcnow()
        try:
            subject = self._require_subject(subject_id)
        except SubjectNotFoundError as exc:
            return RefreshResult(success=False, message=str(exc))

        fallback = self.is_fallback_mode()
        tag = Provider.PRICECHARTING.value if fallback else CONSOLIDATED_TAG

        cached = self.cache.get(subject.subject_key, tag, now)
        if cached is not None:
            logger.debug("Subject %s: cache hit (%s)", subject_id, tag)
            return _refresh_from_cache(cached, fallback)
        logger.debug("Subject %s: cache miss (%s)", subject_id, tag)

        fan_out = await self.orchestrator.collect(subject, now)
        if not fan_out.observations:
            return RefreshResult(
                success=False,
                value_cents=subject.current_value_cents,
                source=subject.value_source,
                confidence=subject.value_confidence,
                message=self._no_sources_message(subject, fan_out),
            )

        if fallback:
            observation = fan_out.observations[0]
            self.writer.record_single_source(subject, observation, now)
            return RefreshResult(
                success=True,
                value_cents=observation.price_cents,
                source=ValueSource.API,
                confidence=observation.confidence,
                message=f"Updated from PriceCharting: {observation.label or observation.provider_item_id}",
                observations=[observation],
            )

        valuation = self._persist_consolidated(subject, fan_out, now)
        return RefreshResult(
            success=True,
            value_cents=valuation.value_cents,
            source=ValueSource.CONSOLIDATED,
            confidence=valuation.confidence,
            message=_consolidated_message(valuation),
            observations=valuation.sources,
            trend=valuation.trend,
            volatility=valuation.volatility,
        )

    async def get_consolidated_valuation(
        self, subject_id: int, now: Optional[datetime] = None
    ) -> ConsolidatedResult:
        now = now or utcnow()
        try:
            subject = self._require_subject(subject_id)
        except SubjectNotFoundError as exc:
            return ConsolidatedResult(success=False, message=str(exc))

        fallback = self.is_fallback_mode()
        tag = Provider.PRICECHARTING.value if fallback else CONSOLIDATED_TAG

        cached = self.cache.get(subject.subject_key, tag, now)
        if cached is not None and cached.raw_payload:
            logger.debug("Subject %s: consolidated cache hit (%s)", subject_id, tag)
            valuation = _valuation_from_cache(cached, fallback)
            return ConsolidatedResult(
                success=True, consolidated=valuation, message=_consolidated_message(valuation)
            )

        fan_out = await self.orchestrator.collect(subject, now)
        if not fan_out.observations:
            return ConsolidatedResult(
                success=False, message=self._no_sources_message(subject, fan_out)
            )

        if fallback:
            observation = fan_out.observations[0]
            self.writer.record_single_source(subject, observation, now)
            valuation = consolidate([observation], now)
        else:
            valuation = self._persist_consolidated(subject, fan_out, now)
        return ConsolidatedResult(
            success=True, consolidated=valuation, message=_consolidated_message(valuation)
        )

    def _persist_consolidated(
        self, subject: Subject, fan_out: FanOutResult, now: datetime
    ) -> ConsolidatedValuation:
        valuation = consolidate(fan_out.observations, now)
        self.writer.record_observations(subject, fan_out.observations, fan_out.reused, now)
        self.writer.record_consolidated(subject, valuation, now)
        return valuation

    def _no_sources_message(self, subject: Subject, fan_out: FanOutResult) -> str:
        available = fan_out.available
        if not available:
            reason = "no pricing provider is configured"
        elif not fan_out.selected:
            if available == [Provider.PRICECHARTING] and not subject.is_linked:
                reason = "no catalog product linked to this item"
            else:
                reason = "no configured provider applies to this item"
        else:
            reason = f"{len(fan_out.failed)} source(s) returned no data"
        logger.info("Subject %s: %s: %s", subject.subject_id, NO_SOURCES, reason)
        return f"{NO_SOURCES}: {reason}"

    # ── Catalog linking ────────────────────────────────────────────────────────

    def link_subject_to_catalog_entry(
        self,
        subject_id: int,
        catalog_id: str,
        display_name: str,
        secondary_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LinkResult:
        """Link a subject to a catalog product and drop its cached valuations."""
        now = now or utcnow()
        try:
            subject = self._require_subject(subject_id)
        except SubjectNotFoundError as exc:
            return LinkResult(success=False, message=str(exc))
        if not catalog_id.strip() or not display_name.strip():
            return LinkResult(success=False, message="Catalog id and display name are required")

        entry_id, created = self.catalog.upsert_by_provider_id(
            catalog_id, display_name, secondary_name, now=now
        )
        self.subjects.link_catalog_entry(subject_id, entry_id, now=now)
        self.subjects.commit()
        invalidated = self.cache.invalidate(subject.subject_key, now)
        logger.info(
            "Subject %s linked to catalog entry %d (%s); %d cache entries invalidated",
            subject_id,
            entry_id,
            catalog_id,
            invalidated,
        )
        return LinkResult(
            success=True,
            catalog_entry_id=entry_id,
            message=(
                "Created and linked to new catalog entry"
                if created
                else "Linked to existing catalog entry"
            ),
            invalidated=invalidated,
        )

    async def search_catalog(self, query: str) -> list[CatalogSearchHit]:
        adapter = next(
            (a for a in self.adapters if isinstance(a, PriceChartingAdapter)), None
        )
        if adapter is None:
            return []
        if self._client is not None:
            return await adapter.search_products(query, self._client)
        async with httpx.AsyncClient(follow_redirects=True) as client:
            return await adapter.search_products(query, client)

    # ── History, overrides, stats ──────────────────────────────────────────────

    def valuation_history(self, subject_id: int, limit: int = 50) -> list[CacheEntry]:
        return self.cache.history(str(subject_id), limit)

    def override_value(
        self, subject_id: int, value_cents: int, now: Optional[datetime] = None
    ) -> Optional[Subject]:
        """Set a manual value; returns the updated subject, or ``None`` if missing."""
        now = now or utcnow()
        if not self.subjects.apply_override(subject_id, value_cents, now=now):
            return None
        self.subjects.commit()
        self.cache.invalidate(str(subject_id), now)
        return self.subjects.get_by_id(subject_id)

    def cache_stats(self, now: Optional[datetime] = None) -> CacheStats:
        return self.cache.stats(now)

    def _require_subject(self, subject_id: int) -> Subject:
        subject = self.subjects.get_by_id(subject_id)
        if subject is None:
            raise SubjectNotFoundError(subject_id)
        return subject


# ── Private helpers ────────────────────────────────────────────────────────────

def _consolidated_message(valuation: ConsolidatedValuation) -> str:
    providers = ", ".join(p.value for p in valuation.providers)
    return f"Consolidated from {len(valuation.sources)} source(s): {providers}"


def _refresh_from_cache(entry: CacheEntry, fallback: bool) -> RefreshResult:
    observations: list[SourceObservation] = []
    trend = volatility = None
    if entry.raw_payload:
        if fallback:
            observations = [SourceObservation.model_validate_json(entry.raw_payload)]
        else:
            valuation = ConsolidatedValuation.model_validate_json(entry.raw_payload)
            observations = valuation.sources
            trend, volatility = valuation.trend, valuation.volatility
    return RefreshResult(
        success=True,
        value_cents=entry.value_cents,
        source=ValueSource.CACHED,
        confidence=entry.confidence,
        message=CACHED_MESSAGE,
        observations=observations,
        trend=trend,
        volatility=volatility,
    )


def _valuation_from_cache(entry: CacheEntry, fallback: bool) -> ConsolidatedValuation:
    """Rebuild the stored valuation; fallback rows hold the single observation."""
    if fallback:
        observation = SourceObservation.model_validate_json(entry.raw_payload or "")
        return consolidate([observation], entry.fetched_at)
    return ConsolidatedValuation.model_validate_json(entry.raw_payload or "")
