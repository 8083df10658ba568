"""
Scraped eBay sold-listings adapter (RapidAPI "average selling price" service).

POSTs a keyword search for completed items; prices are quoted in dollars.
Condition is expressed by appending a word to the search keywords.

Credential: ``RAPIDAPI_KEY`` (longer than 10 characters).
"""

from __future__ import annotations

import logging
from typing import ClassVar, Optional

import httpx

from valuation_engine.config import EbayScraperConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.sources.query import build_search_query, has_searchable_title
from valuation_engine.sources.sold_stats import (
    SoldSale,
    compute_sold_stats,
    confidence_for_sample,
    weight_for_sample,
)
from valuation_engine.taxonomy.valuation_taxonomy import ItemCondition, Provider
from valuation_engine.utils.money import dollars_to_cents
from valuation_engine.utils.time_utils import parse_sale_date, utcnow

logger = logging.getLogger(__name__)


class EbayScraperAdapter(SourceAdapter):
    """Completed-items search through a RapidAPI scraper."""

    provider: ClassVar[Provider] = Provider.EBAY_SCRAPER
    # Values are keyword suffixes; empty means "no suffix".
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {
        ItemCondition.NEW_SEALED:      "sealed",
        ItemCondition.COMPLETE_IN_BOX: "complete",
        ItemCondition.GRADED:          "graded",
        ItemCondition.LOOSE:           "",
        ItemCondition.OTHER:           "",
    }
    DEFAULT_PRICE_FIELD: ClassVar[str] = ""

    SEARCH_PATH: ClassVar[str] = "/findCompletedItems"
    MIN_KEY_LENGTH: ClassVar[int] = 10

    CONFIDENCE_BASE: ClassVar[int] = 55
    CONFIDENCE_CEILING: ClassVar[int] = 90
    WEIGHT_TIERS: ClassVar[tuple[tuple[int, float], ...]] = ((10, 0.6), (5, 0.5), (0, 0.3))

    config: EbayScraperConfig

    def __init__(self, config: EbayScraperConfig) -> None:
        super().__init__(config)

    def is_available(self) -> bool:
        return (
            self.config.enabled
            and len(self.config.api_key.get_secret_value()) > self.MIN_KEY_LENGTH
        )

    def is_applicable(self, subject: Subject) -> bool:
        return has_searchable_title(subject)

    def keywords_for(self, subject: Subject) -> str:
        query = build_search_query(subject)
        suffix = self.price_field_for(subject.condition)
        if suffix and suffix not in query.split():
            query = f"{query} {suffix}"
        return query

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        keywords = self.keywords_for(subject)
        resp = await client.post(
            f"{self.config.base_url}{self.SEARCH_PATH}",
            json={"keywords": keywords, "max_search_results": self.config.max_results},
            headers={
                "x-rapidapi-host": self.config.host,
                "x-rapidapi-key": self.config.api_key.get_secret_value(),
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        sales = [
            SoldSale(
                price_cents=dollars_to_cents(product.get("sale_price")),
                sold_at=parse_sale_date(product.get("date_sold")),
            )
            for product in data.get("products") or []
        ]
        now = utcnow()
        stats = compute_sold_stats(sales, now)
        if stats is None:
            return self._absent(subject, f"no priced completed items for {keywords!r}")

        return SourceObservation(
            provider=self.provider,
            price_cents=stats.average_cents,
            weight=weight_for_sample(stats.sample_size, self.WEIGHT_TIERS),
            confidence=confidence_for_sample(
                stats.sample_size, self.CONFIDENCE_BASE, self.CONFIDENCE_CEILING
            ),
            sample_size=stats.sample_size,
            observed_at=now,
            label=keywords,
            trend=stats.trend,
            volatility=stats.volatility,
            raw={
                "keywords": keywords,
                "median_cents": stats.median_cents,
                "min_cents": stats.min_cents,
                "max_cents": stats.max_cents,
            },
        )
