"""
Closed registry of pricing adapters.

``build_adapters()`` returns one adapter per ``Provider`` in declaration
order, which is the order the orchestrator invokes them and the order
observations appear in a consolidated valuation.
"""

from __future__ import annotations

from valuation_engine.config import SourcesConfig
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.sources.ebay_insights import EbayInsightsAdapter
from valuation_engine.sources.ebay_scraper import EbayScraperAdapter
from valuation_engine.sources.justtcg import JustTcgAdapter
from valuation_engine.sources.pricecharting import PriceChartingAdapter
from valuation_engine.sources.stockx import StockxAdapter
from valuation_engine.taxonomy.valuation_taxonomy import Provider

ADAPTER_TYPES: dict[Provider, type[SourceAdapter]] = {
    Provider.PRICECHARTING: PriceChartingAdapter,
    Provider.EBAY:          EbayInsightsAdapter,
    Provider.EBAY_SCRAPER:  EbayScraperAdapter,
    Provider.JUSTTCG:       JustTcgAdapter,
    Provider.STOCKX:        StockxAdapter,
}


def build_adapters(config: SourcesConfig) -> list[SourceAdapter]:
    """Instantiate every adapter with its own config section, in invocation order."""
    return [
        ADAPTER_TYPES[provider](getattr(config, provider.value))
        for provider in Provider
    ]
