"""Scriptable adapters for orchestrator and service tests."""

from __future__ import annotations

from typing import Optional

import httpx

from valuation_engine.config import SourceConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.taxonomy.valuation_taxonomy import Provider
from valuation_engine.utils.time_utils import utcnow


class FakeAdapter(SourceAdapter):
    """Adapter that answers from fixed settings and counts its calls.

    Args:
        provider: Provider this fake speaks for.
        price_cents: Price of the returned observation; ``None`` means "no data".
        available: Value of ``is_available()``.
        applicable: Value of ``is_applicable()``.
        error: Exception raised from ``_fetch`` instead of answering.
    """

    def __init__(
        self,
        provider: Provider,
        price_cents: Optional[int] = 3000,
        weight: float = 0.5,
        confidence: int = 80,
        available: bool = True,
        applicable: bool = True,
        error: Optional[Exception] = None,
        **observation_fields,
    ) -> None:
        super().__init__(SourceConfig())
        self.provider = provider
        self.price_cents = price_cents
        self.weight = weight
        self.confidence = confidence
        self.available = available
        self.applicable = applicable
        self.error = error
        self.observation_fields = observation_fields
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    def is_applicable(self, subject: Subject) -> bool:
        return self.applicable

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.price_cents is None:
            return self._absent(subject, "scripted empty answer")
        return SourceObservation(
            provider=self.provider,
            price_cents=self.price_cents,
            weight=self.weight,
            confidence=self.confidence,
            observed_at=utcnow(),
            **self.observation_fields,
        )


def unused_client() -> httpx.AsyncClient:
    """A client whose transport fails any request (fakes never send one)."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
