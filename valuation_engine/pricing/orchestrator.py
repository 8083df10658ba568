"""
Fan-out orchestrator.

For one subject:
  1. Plan: every adapter is either selected, or skipped as ``unavailable``
     (no credentials) or ``not_applicable`` (category / vocabulary routing).
  2. For each selected adapter, reuse a live per-provider cache entry if one
     exists; otherwise call ``adapter.fetch()``.
  3. Await all of them together (``asyncio.gather``); one adapter failing,
     raising, or returning nothing never affects the others.

Adapters bound their own latency through per-request timeouts; there is no
cross-adapter deadline here. Observations keep adapter invocation order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx
from pydantic import ValidationError

from valuation_engine.config import CacheConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.pricing.cache import ValuationCache
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.taxonomy.valuation_taxonomy import Provider

logger = logging.getLogger(__name__)

SKIP_UNAVAILABLE = "unavailable"
SKIP_NOT_APPLICABLE = "not_applicable"


@dataclass
class FanOutResult:
    """What happened during one fan-out."""

    selected:     list[Provider] = field(default_factory=list)
    skipped:      dict[Provider, str] = field(default_factory=dict)
    observations: list[SourceObservation] = field(default_factory=list)
    failed:       list[Provider] = field(default_factory=list)
    reused:       list[Provider] = field(default_factory=list)
    elapsed_ms:   float = 0.0

    @property
    def available(self) -> list[Provider]:
        """Providers with credentials, whether or not they applied."""
        return self.selected + [
            p for p, reason in self.skipped.items() if reason == SKIP_NOT_APPLICABLE
        ]


class FanOutOrchestrator:
    """Selects applicable adapters and runs them concurrently.

    Args:
        adapters: Adapters in invocation order (see ``build_adapters``).
        cache: Consulted per provider before any network call.
        config: Cache TTL settings (only used for logging context).
        client: Optional shared ``httpx.AsyncClient``; when omitted, one
            client is opened per fan-out and closed afterwards.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        cache: ValuationCache,
        config: CacheConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.adapters = list(adapters)
        self.cache = cache
        self.config = config
        self._client = client

    def plan(self, subject: Subject) -> tuple[list[SourceAdapter], dict[Provider, str]]:
        selected: list[SourceAdapter] = []
        skipped: dict[Provider, str] = {}
        for adapter in self.adapters:
            if not adapter.is_available():
                logger.debug("[%s] not configured; skipping", adapter.provider)
                skipped[adapter.provider] = SKIP_UNAVAILABLE
            elif not adapter.is_applicable(subject):
                logger.debug(
                    "[%s] not applicable to subject %s", adapter.provider, subject.subject_id
                )
                skipped[adapter.provider] = SKIP_NOT_APPLICABLE
            else:
                selected.append(adapter)
        return selected, skipped

    async def collect(
        self, subject: Subject, now: Optional[datetime] = None
    ) -> FanOutResult:
        selected, skipped = self.plan(subject)
        result = FanOutResult(selected=[a.provider for a in selected], skipped=skipped)
        if not selected:
            logger.info("Subject %s: no applicable pricing sources", subject.subject_id)
            return result

        start = time.perf_counter()
        if self._client is not None:
            outcomes = await self._gather(selected, subject, self._client, now)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                outcomes = await self._gather(selected, subject, client, now)
        result.elapsed_ms = (time.perf_counter() - start) * 1000

        for adapter, (observation, reused) in zip(selected, outcomes):
            if observation is None:
                result.failed.append(adapter.provider)
                continue
            result.observations.append(observation)
            if reused:
                result.reused.append(adapter.provider)

        logger.info(
            "Subject %s fan-out: %d selected [%s], %d contributed (%d from cache), %.0f ms",
            subject.subject_id,
            len(selected),
            ", ".join(result.selected),
            len(result.observations),
            len(result.reused),
            result.elapsed_ms,
        )
        return result

    async def _gather(
        self,
        selected: list[SourceAdapter],
        subject: Subject,
        client: httpx.AsyncClient,
        now: Optional[datetime],
    ) -> list[tuple[Optional[SourceObservation], bool]]:
        return await asyncio.gather(
            *(self._fetch_one(adapter, subject, client, now) for adapter in selected)
        )

    async def _fetch_one(
        self,
        adapter: SourceAdapter,
        subject: Subject,
        client: httpx.AsyncClient,
        now: Optional[datetime],
    ) -> tuple[Optional[SourceObservation], bool]:
        cached = self._cached_observation(adapter.provider, subject, now)
        if cached is not None:
            logger.debug("[%s] cache hit for subject %s", adapter.provider, subject.subject_id)
            return cached, True

        try:
            observation = await adapter.fetch(subject, client)
        except Exception:
            logger.warning(
                "[%s] subject=%s raised; treating as no data",
                adapter.provider,
                subject.subject_id,
                exc_info=True,
            )
            return None, False
        return observation, False

    def _cached_observation(
        self, provider: Provider, subject: Subject, now: Optional[datetime]
    ) -> Optional[SourceObservation]:
        entry = self.cache.get(subject.subject_key, provider.value, now)
        if entry is None or not entry.raw_payload:
            return None
        try:
            return SourceObservation.model_validate_json(entry.raw_payload)
        except ValidationError:
            logger.warning("[%s] cached entry %s is not an observation; ignoring", provider, entry.entry_id)
            return None
