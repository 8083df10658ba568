"""
Sold-listing statistics shared by both eBay adapters.

Given a list of sales (price in cents, optional sold date) this computes the
average, median, min and max price, the trend of recent sales against older
ones, and a volatility bucket from the coefficient of variation.

Trend buckets:
  - recent: sold within the last 15 days
  - older:  sold 15–30 days ago
Both buckets need at least ``MIN_BUCKET_SALES`` sales, otherwise the trend is
``stable``. A recent mean more than 5 % above the older mean is ``up``, more
than 5 % below is ``down``.

Volatility (population standard deviation / mean):
  > 30 % → high, > 15 % → medium, otherwise low.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from valuation_engine.taxonomy.valuation_taxonomy import Trend, Volatility
from valuation_engine.utils.money import round_half_up
from valuation_engine.utils.time_utils import utcnow

RECENT_WINDOW = timedelta(days=15)
OLDER_WINDOW = timedelta(days=30)
MIN_BUCKET_SALES = 3
TREND_THRESHOLD = 0.05
HIGH_VOLATILITY_CV = 0.30
MEDIUM_VOLATILITY_CV = 0.15


@dataclass(frozen=True)
class SoldSale:
    """One completed sale."""

    price_cents: int
    sold_at:     Optional[datetime] = None


@dataclass(frozen=True)
class SoldPriceStats:
    """Summary of a set of sold listings."""

    average_cents: int
    median_cents:  int
    min_cents:     int
    max_cents:     int
    sample_size:   int
    trend:         Trend
    volatility:    Volatility


def compute_sold_stats(
    sales: list[SoldSale],
    now: Optional[datetime] = None,
) -> Optional[SoldPriceStats]:
    """Summarize positive-priced sales; ``None`` when there are none."""
    priced = [s for s in sales if s.price_cents > 0]
    if not priced:
        return None

    prices = [s.price_cents for s in priced]
    mean = statistics.fmean(prices)

    return SoldPriceStats(
        average_cents=round_half_up(mean),
        median_cents=round_half_up(statistics.median(prices)),
        min_cents=min(prices),
        max_cents=max(prices),
        sample_size=len(prices),
        trend=classify_trend(priced, now or utcnow()),
        volatility=classify_volatility(prices),
    )


def classify_trend(sales: list[SoldSale], now: datetime) -> Trend:
    recent: list[int] = []
    older: list[int] = []
    for sale in sales:
        if sale.sold_at is None:
            continue
        age = now - sale.sold_at
        if age < timedelta(0):
            continue
        if age < RECENT_WINDOW:
            recent.append(sale.price_cents)
        elif age < OLDER_WINDOW:
            older.append(sale.price_cents)

    if len(recent) < MIN_BUCKET_SALES or len(older) < MIN_BUCKET_SALES:
        return Trend.STABLE

    recent_mean = statistics.fmean(recent)
    older_mean = statistics.fmean(older)
    change = (recent_mean - older_mean) / older_mean
    if change > TREND_THRESHOLD:
        return Trend.UP
    if change < -TREND_THRESHOLD:
        return Trend.DOWN
    return Trend.STABLE


def classify_volatility(prices: list[int]) -> Volatility:
    if len(prices) < 2:
        return Volatility.LOW
    mean = statistics.fmean(prices)
    if mean <= 0:
        return Volatility.LOW
    cv = statistics.pstdev(prices) / mean
    if cv > HIGH_VOLATILITY_CV:
        return Volatility.HIGH
    if cv > MEDIUM_VOLATILITY_CV:
        return Volatility.MEDIUM
    return Volatility.LOW


def confidence_for_sample(sample_size: int, base: int, ceiling: int, per_sale: int = 2) -> int:
    """Confidence grows with matched sales and saturates at ``ceiling``."""
    return min(ceiling, base + per_sale * sample_size)


def weight_for_sample(sample_size: int, tiers: tuple[tuple[int, float], ...]) -> float:
    """Pick the weight of the first ``(min_sales, weight)`` tier that applies.

    ``tiers`` must be ordered from the highest threshold down and end with a
    ``0`` threshold.
    """
    for min_sales, weight in tiers:
        if sample_size >= min_sales:
            return weight
    return tiers[-1][1]
