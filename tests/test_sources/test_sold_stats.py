"""Tests for sold-listing statistics."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from valuation_engine.sources.sold_stats import (
    SoldSale,
    classify_trend,
    classify_volatility,
    compute_sold_stats,
    confidence_for_sample,
    weight_for_sample,
)
from valuation_engine.taxonomy.valuation_taxonomy import Trend, Volatility

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _sales(prices, days_ago):
    return [SoldSale(p, NOW - timedelta(days=days_ago)) for p in prices]


class TestComputeSoldStats:
    def test_empty_returns_none(self):
        assert compute_sold_stats([], NOW) is None
        assert compute_sold_stats([SoldSale(0), SoldSale(-5)], NOW) is None

    def test_summary(self):
        stats = compute_sold_stats([SoldSale(1000), SoldSale(2000), SoldSale(4000)], NOW)
        assert stats.average_cents == 2333
        assert stats.median_cents == 2000
        assert stats.min_cents == 1000
        assert stats.max_cents == 4000
        assert stats.sample_size == 3

    def test_undated_sales_count_toward_average_only(self):
        sales = _sales([1000] * 3, 20) + _sales([2000] * 3, 2) + [SoldSale(9000)]
        stats = compute_sold_stats(sales, NOW)
        assert stats.sample_size == 7
        assert stats.trend == Trend.UP


class TestTrend:
    def test_up(self):
        assert classify_trend(_sales([1000] * 3, 20) + _sales([1100] * 3, 3), NOW) == Trend.UP

    def test_down(self):
        assert classify_trend(_sales([1000] * 3, 20) + _sales([900] * 3, 3), NOW) == Trend.DOWN

    def test_within_five_percent_is_stable(self):
        assert classify_trend(_sales([1000] * 3, 20) + _sales([1040] * 3, 3), NOW) == Trend.STABLE

    def test_needs_three_sales_per_bucket(self):
        assert classify_trend(_sales([1000] * 2, 20) + _sales([5000] * 5, 3), NOW) == Trend.STABLE

    def test_sales_older_than_30_days_ignored(self):
        assert classify_trend(_sales([100] * 5, 45) + _sales([5000] * 5, 3), NOW) == Trend.STABLE


class TestVolatility:
    def test_identical_prices_low(self):
        assert classify_volatility([1000, 1000, 1000]) == Volatility.LOW

    def test_single_price_low(self):
        assert classify_volatility([1000]) == Volatility.LOW

    def test_medium(self):
        # mean 1000, pstdev 200 → cv 0.2
        assert classify_volatility([800, 1200]) == Volatility.MEDIUM

    def test_high(self):
        # mean 1000, pstdev 500 → cv 0.5
        assert classify_volatility([500, 1500]) == Volatility.HIGH


class TestConfidenceAndWeight:
    @pytest.mark.parametrize("n, expected", [(0, 60), (1, 62), (9, 78), (17, 94), (18, 95), (50, 95)])
    def test_official_confidence_saturates(self, n, expected):
        assert confidence_for_sample(n, base=60, ceiling=95) == expected

    @pytest.mark.parametrize("n, expected", [(1, 0.4), (4, 0.4), (5, 0.6), (9, 0.6), (10, 0.7), (40, 0.7)])
    def test_weight_tiers(self, n, expected):
        assert weight_for_sample(n, ((10, 0.7), (5, 0.6), (0, 0.4))) == expected
