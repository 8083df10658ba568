"""
Valuation writer: persists completed valuations.

Every write is synchronous. When a ``record_*`` method returns, the cache
entry has been stored and the subject row updated, so a value handed back to
a caller is already durably cached.

Cache rows written here:
  - ``"consolidated"``   full ``ConsolidatedValuation`` JSON, consolidated TTL
  - ``<provider>``       one ``SourceObservation`` JSON, that provider's TTL
                         (fallback single-source answers use the consolidated TTL)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from valuation_engine.config import CacheConfig
from valuation_engine.db.repositories.subject_repo import SubjectRepository
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import CacheEntry, ConsolidatedValuation, SourceObservation
from valuation_engine.pricing.cache import ValuationCache
from valuation_engine.taxonomy.valuation_taxonomy import Provider, ValueSource
from valuation_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CONSOLIDATED_TAG = "consolidated"


class ValuationWriter:
    """Writes valuations to the cache and onto the subject."""

    def __init__(
        self,
        cache: ValuationCache,
        subjects: SubjectRepository,
        config: CacheConfig,
    ) -> None:
        self.cache = cache
        self.subjects = subjects
        self.config = config

    def record_consolidated(
        self,
        subject: Subject,
        valuation: ConsolidatedValuation,
        now: Optional[datetime] = None,
    ) -> CacheEntry:
        now = now or utcnow()
        entry = self.cache.put(
            subject.subject_key,
            CONSOLIDATED_TAG,
            valuation.value_cents,
            valuation.confidence,
            sum(s.sample_size for s in valuation.sources),
            valuation.model_dump_json(),
            self.config.consolidated_ttl,
            now=now,
        )
        self._update_subject(
            subject, valuation.value_cents, ValueSource.CONSOLIDATED, valuation.confidence, now
        )
        logger.info(
            "Subject %s valued at %d cents (confidence %d) from %d source(s)",
            subject.subject_id,
            valuation.value_cents,
            valuation.confidence,
            len(valuation.sources),
        )
        return entry

    def record_single_source(
        self,
        subject: Subject,
        observation: SourceObservation,
        now: Optional[datetime] = None,
    ) -> CacheEntry:
        now = now or utcnow()
        entry = self.cache.put(
            subject.subject_key,
            observation.provider.value,
            observation.price_cents,
            observation.confidence,
            observation.sample_size,
            observation.model_dump_json(),
            self.config.consolidated_ttl,
            now=now,
        )
        self._update_subject(
            subject, observation.price_cents, ValueSource.API, observation.confidence, now
        )
        logger.info(
            "Subject %s valued at %d cents from %s only",
            subject.subject_id,
            observation.price_cents,
            observation.provider,
        )
        return entry

    def record_observations(
        self,
        subject: Subject,
        observations: Iterable[SourceObservation],
        reused: Iterable[Provider] = (),
        now: Optional[datetime] = None,
    ) -> list[CacheEntry]:
        """Store per-provider audit rows, skipping providers answered from cache."""
        now = now or utcnow()
        skip = set(reused)
        entries: list[CacheEntry] = []
        for obs in observations:
            if obs.provider in skip:
                continue
            entries.append(
                self.cache.put(
                    subject.subject_key,
                    obs.provider.value,
                    obs.price_cents,
                    obs.confidence,
                    obs.sample_size,
                    obs.model_dump_json(),
                    self.config.provider_ttl(obs.provider),
                    now=now,
                )
            )
        return entries

    def _update_subject(
        self,
        subject: Subject,
        value_cents: int,
        source: ValueSource,
        confidence: Optional[int],
        now: datetime,
    ) -> None:
        if subject.subject_id is None:
            raise ValueError("Subject has no id; insert it before valuing it.")
        self.subjects.update_valuation(subject.subject_id, value_cents, source, confidence, now=now)
        self.subjects.commit()
