"""
Result objects returned by ``ValuationService``.

Failures are reported through ``success=False`` and a human-readable
``message``; the service never raises for "subject not found" or "no pricing
sources available".
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from valuation_engine.models.valuation import ConsolidatedValuation, SourceObservation
from valuation_engine.taxonomy.valuation_taxonomy import Trend, ValueSource, Volatility


class RefreshResult(BaseModel):
    """Outcome of ``refresh_valuation``.

    On failure ``value_cents``/``source``/``confidence`` echo the subject's
    previous (unchanged) values when the subject exists.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    value_cents: Optional[int] = None
    source: Optional[ValueSource] = None
    confidence: Optional[int] = None
    message: str
    observations: list[SourceObservation] = []
    trend: Optional[Trend] = None
    volatility: Optional[Volatility] = None


class ConsolidatedResult(BaseModel):
    """Outcome of ``get_consolidated_valuation``."""

    model_config = ConfigDict(frozen=True)

    success: bool
    consolidated: Optional[ConsolidatedValuation] = None
    message: str


class LinkResult(BaseModel):
    """Outcome of ``link_subject_to_catalog_entry``."""

    model_config = ConfigDict(frozen=True)

    success: bool
    catalog_entry_id: Optional[int] = None
    message: str
    invalidated: int = 0


class CatalogSearchHit(BaseModel):
    """One product returned by a catalog search."""

    model_config = ConfigDict(frozen=True)

    provider_product_id: str
    display_name: str
    secondary_name: Optional[str] = None
