"""
Valuation models: per-source observations, consolidated valuations and cache
entries.

``SourceObservation`` is one provider's answer during one valuation attempt.
``ConsolidatedValuation`` is the weighted merge of those answers; it is
immutable and is persisted verbatim (as JSON) in the cache so a cache hit
returns exactly what was computed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from valuation_engine.taxonomy.valuation_taxonomy import Provider, Trend, Volatility


class SourceObservation(BaseModel):
    """One provider's price for one subject.

    Attributes:
        provider: Which source produced the price.
        price_cents: Price in US cents.
        weight: Relative weight in [0, 1]; meaningful only against the other
            observations of the same pass until normalized.
        confidence: 0–100 trust score from the provider's signal quality.
        sample_size: Number of sales/listings behind the price.
        observed_at: When the provider answered.
        provider_item_id: Provider's id for the matched product, if any.
        label: Provider's name for the matched product, if any.
        trend: Sold-listings sources only.
        volatility: Sold-listings sources only.
        raw: Trimmed provider payload kept for the audit trail.
    """

    model_config = ConfigDict(frozen=True)

    provider: Provider
    price_cents: int
    weight: float
    confidence: int
    sample_size: int = 1
    observed_at: datetime
    provider_item_id: Optional[str] = None
    label: Optional[str] = None
    trend: Optional[Trend] = None
    volatility: Optional[Volatility] = None
    raw: Optional[dict[str, Any]] = None

    @field_validator("price_cents", "sample_size")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Price and sample size must be >= 0, got {v}.")
        return v

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"weight must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("confidence")
    @classmethod
    def validate_confidence(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"confidence must be in [0, 100], got {v}.")
        return v


class PriceRange(BaseModel):
    """Spread of contributing prices; only present when low != high."""

    model_config = ConfigDict(frozen=True)

    low_cents: int
    high_cents: int
    display: str

    @model_validator(mode="after")
    def validate_order(self) -> "PriceRange":
        if self.low_cents > self.high_cents:
            raise ValueError(
                f"low_cents ({self.low_cents}) must not exceed high_cents ({self.high_cents})."
            )
        return self


class ConsolidatedValuation(BaseModel):
    """Output of one consolidation pass.

    ``sources`` keeps the adapters' invocation order and carries normalized
    weights (summing to 1).
    """

    model_config = ConfigDict(frozen=True)

    value_cents: int
    confidence: int
    sources: list[SourceObservation]
    trend: Trend = Trend.STABLE
    volatility: Volatility = Volatility.LOW
    price_range: Optional[PriceRange] = None
    consolidated_at: datetime

    @model_validator(mode="after")
    def validate_within_source_prices(self) -> "ConsolidatedValuation":
        if self.sources:
            prices = [s.price_cents for s in self.sources]
            if not min(prices) <= self.value_cents <= max(prices):
                raise ValueError(
                    f"Consolidated value {self.value_cents} outside source range "
                    f"[{min(prices)}, {max(prices)}]."
                )
        return self

    @property
    def providers(self) -> list[Provider]:
        return [s.provider for s in self.sources]


class CacheEntry(BaseModel):
    """One row of the valuation cache / audit log."""

    model_config = ConfigDict(frozen=True)

    entry_id: Optional[int] = None
    subject_key: str
    purpose_tag: str
    value_cents: int
    confidence: Optional[int] = None
    sample_size: Optional[int] = None
    raw_payload: Optional[str] = None
    fetched_at: datetime
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        """An entry is usable iff it expires strictly after ``now``."""
        return self.expires_at > now


@dataclass(frozen=True)
class CacheStats:
    """Cache occupancy summary."""

    total_entries:    int
    live_entries:     int
    distinct_subjects: int
