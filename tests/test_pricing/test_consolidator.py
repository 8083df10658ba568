"""Tests for weighted consolidation of source observations."""

from __future__ import annotations

import pytest

from valuation_engine.pricing.consolidator import consolidate, market_signals, normalize_weights
from valuation_engine.pricing.errors import NoSourcesAvailableError
from valuation_engine.taxonomy.valuation_taxonomy import Provider, Trend, Volatility


class TestNormalizeWeights:
    def test_sums_to_one(self, make_observation):
        obs = [
            make_observation(weight=0.4),
            make_observation(Provider.EBAY, weight=0.7),
            make_observation(Provider.STOCKX, weight=0.8),
        ]
        weights = normalize_weights(obs)
        assert sum(weights) == pytest.approx(1.0)
        assert weights[0] == pytest.approx(0.4 / 1.9)

    def test_all_zero_weights_become_equal(self, make_observation):
        obs = [make_observation(weight=0.0), make_observation(Provider.EBAY, weight=0.0)]
        assert normalize_weights(obs) == [0.5, 0.5]

    def test_empty(self):
        assert normalize_weights([]) == []


class TestConsolidate:
    def test_catalog_and_sold_listings(self, make_observation, now):
        obs = [
            make_observation(Provider.PRICECHARTING, 3000, weight=0.4, confidence=85),
            make_observation(Provider.EBAY, 4000, weight=0.6, confidence=78),
        ]
        valuation = consolidate(obs, now)
        assert valuation.value_cents == 3600
        assert valuation.confidence == 81
        assert [s.weight for s in valuation.sources] == pytest.approx([0.4, 0.6])
        assert valuation.consolidated_at == now

    def test_single_source_passes_through(self, make_observation):
        valuation = consolidate([make_observation(price_cents=3000, confidence=85)])
        assert valuation.value_cents == 3000
        assert valuation.confidence == 85
        assert valuation.sources[0].weight == 1.0
        assert valuation.price_range is None

    def test_value_within_source_range(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING, 1999, weight=0.33),
            make_observation(Provider.EBAY, 2001, weight=0.33),
            make_observation(Provider.EBAY_SCRAPER, 2000, weight=0.34),
        ]
        valuation = consolidate(obs)
        assert 1999 <= valuation.value_cents <= 2001

    def test_zero_weights_average_equally(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING, 1000, weight=0.0, confidence=60),
            make_observation(Provider.EBAY, 2000, weight=0.0, confidence=90),
        ]
        valuation = consolidate(obs)
        assert valuation.value_cents == 1500
        assert valuation.confidence == 75

    def test_half_cent_rounds_up(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING, 1000, weight=0.5),
            make_observation(Provider.EBAY, 1001, weight=0.5),
        ]
        assert consolidate(obs).value_cents == 1001

    def test_inputs_not_mutated_and_order_kept(self, make_observation):
        obs = [
            make_observation(Provider.STOCKX, 5000, weight=0.8),
            make_observation(Provider.PRICECHARTING, 3000, weight=0.4),
        ]
        valuation = consolidate(obs)
        assert [o.weight for o in obs] == [0.8, 0.4]
        assert [s.provider for s in valuation.sources] == [Provider.STOCKX, Provider.PRICECHARTING]
        assert valuation.providers == [Provider.STOCKX, Provider.PRICECHARTING]

    def test_deterministic(self, make_observation, now):
        obs = [
            make_observation(Provider.PRICECHARTING, 3000, weight=0.4),
            make_observation(Provider.EBAY, 4100, weight=0.6),
        ]
        assert consolidate(obs, now) == consolidate(obs, now)

    def test_price_range_display(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING, 3000),
            make_observation(Provider.EBAY, 400000),
        ]
        price_range = consolidate(obs).price_range
        assert price_range.low_cents == 3000
        assert price_range.high_cents == 400000
        assert price_range.display == "$30.00 – $4,000.00"

    def test_empty_raises(self):
        with pytest.raises(NoSourcesAvailableError):
            consolidate([])


class TestMarketSignals:
    def test_first_sold_listing_wins(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING),
            make_observation(Provider.EBAY, trend=Trend.UP, volatility=Volatility.HIGH),
            make_observation(Provider.EBAY_SCRAPER, trend=Trend.DOWN, volatility=Volatility.LOW),
        ]
        assert market_signals(obs) == (Trend.UP, Volatility.HIGH)

    def test_defaults_without_sold_listings(self, make_observation):
        obs = [make_observation(Provider.PRICECHARTING, trend=Trend.UP)]
        assert market_signals(obs) == (Trend.STABLE, Volatility.LOW)

    def test_consolidated_carries_signals(self, make_observation):
        obs = [
            make_observation(Provider.PRICECHARTING),
            make_observation(Provider.EBAY_SCRAPER, trend=Trend.DOWN, volatility=Volatility.MEDIUM),
        ]
        valuation = consolidate(obs)
        assert valuation.trend == Trend.DOWN
        assert valuation.volatility == Volatility.MEDIUM
