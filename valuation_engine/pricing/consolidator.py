"""
Consolidation of per-source observations into one valuation.

  value      = round(Σ price_i · w_i')
  confidence = round(Σ confidence_i · w_i')
  w_i'       = w_i / Σ w_j        (equal weights if every w_j is 0)

Trend and volatility are passed through from the first sold-listings
observation (official eBay before scraped, i.e. invocation order) that
carries them; otherwise ``stable`` / ``low``. The price range is included
only when contributing prices differ.

The function is pure: same observations in, same valuation out. Inputs are
never mutated; the returned sources are copies carrying normalized weights.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from valuation_engine.models.valuation import ConsolidatedValuation, PriceRange, SourceObservation
from valuation_engine.pricing.errors import NoSourcesAvailableError
from valuation_engine.taxonomy.valuation_taxonomy import Provider, Trend, Volatility
from valuation_engine.utils.money import format_cents_range, round_half_up
from valuation_engine.utils.time_utils import utcnow

SOLD_LISTING_PROVIDERS = frozenset({Provider.EBAY, Provider.EBAY_SCRAPER})


def normalize_weights(observations: Sequence[SourceObservation]) -> list[float]:
    """Scale weights to sum to 1."""
    if not observations:
        return []
    total = sum(o.weight for o in observations)
    if total <= 0:
        return [1.0 / len(observations)] * len(observations)
    return [o.weight / total for o in observations]


def consolidate(
    observations: Sequence[SourceObservation],
    now: Optional[datetime] = None,
) -> ConsolidatedValuation:
    """Merge observations into a ``ConsolidatedValuation``.

    Raises:
        NoSourcesAvailableError: If ``observations`` is empty.
    """
    if not observations:
        raise NoSourcesAvailableError("No pricing sources available")

    weights = normalize_weights(observations)
    prices = [o.price_cents for o in observations]
    low, high = min(prices), max(prices)

    value = round_half_up(sum(p * w for p, w in zip(prices, weights)))
    # Float error must not push the weighted mean outside the contributing prices.
    value = max(low, min(high, value))
    confidence = round_half_up(sum(o.confidence * w for o, w in zip(observations, weights)))
    confidence = max(0, min(100, confidence))

    trend, volatility = market_signals(observations)

    return ConsolidatedValuation(
        value_cents=value,
        confidence=confidence,
        sources=[o.model_copy(update={"weight": w}) for o, w in zip(observations, weights)],
        trend=trend,
        volatility=volatility,
        price_range=(
            PriceRange(low_cents=low, high_cents=high, display=format_cents_range(low, high))
            if low != high
            else None
        ),
        consolidated_at=now or utcnow(),
    )


def market_signals(observations: Sequence[SourceObservation]) -> tuple[Trend, Volatility]:
    for obs in observations:
        if obs.provider in SOLD_LISTING_PROVIDERS and obs.trend is not None:
            return obs.trend, obs.volatility or Volatility.LOW
    return Trend.STABLE, Volatility.LOW
