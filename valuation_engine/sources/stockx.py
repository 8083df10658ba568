"""
Sneaker adapter (StockX market data via RapidAPI).

Searches products by name and contributes only when exactly one product with
a positive last sale is a strong name match. Market prices are in dollars.

Credential: ``STOCKX_RAPIDAPI_KEY``, falling back to ``RAPIDAPI_KEY``.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Optional

import httpx

from valuation_engine.config import StockxConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.sources.base import (
    SourceAdapter,
    is_strong_match,
    matches_vocabulary,
    subject_names,
)
from valuation_engine.sources.query import build_search_query
from valuation_engine.taxonomy.valuation_taxonomy import ItemCategory, ItemCondition, Provider
from valuation_engine.utils.money import dollars_to_cents
from valuation_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

SNEAKER_KEYWORDS: tuple[str, ...] = (
    "jordan", "nike", "adidas", "yeezy", "dunk", "air max", "air force",
    "new balance", "nb 550", "asics", "puma", "retro", "off-white",
    "travis scott", "supreme", "size 7", "size 8", "size 9", "size 10",
    "size 11", "size 12", "ds", "deadstock", "vnds", "bred", "chicago", "unc",
    "sb dunk", "aj1", "aj4", "aj11", "sneaker", "sneakers", "shoe", "shoes",
)


class StockxAdapter(SourceAdapter):
    """Sneaker resale market prices."""

    provider: ClassVar[Provider] = Provider.STOCKX
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {
        ItemCondition.NEW_SEALED:      "lastSale",
        ItemCondition.COMPLETE_IN_BOX: "lastSale",
        ItemCondition.GRADED:          "lastSale",
        ItemCondition.LOOSE:           "highestBid",
        ItemCondition.OTHER:           "highestBid",
    }
    DEFAULT_PRICE_FIELD: ClassVar[str] = "lastSale"

    SEARCH_PATH: ClassVar[str] = "/search"
    MIN_KEY_LENGTH: ClassVar[int] = 10
    CONFIDENCE: ClassVar[int] = 88
    WEIGHT: ClassVar[float] = 0.8

    config: StockxConfig

    def __init__(self, config: StockxConfig) -> None:
        super().__init__(config)

    def is_available(self) -> bool:
        return (
            self.config.enabled
            and len(self.config.api_key.get_secret_value()) > self.MIN_KEY_LENGTH
        )

    def is_applicable(self, subject: Subject) -> bool:
        return matches_vocabulary(subject, ItemCategory.SNEAKERS, SNEAKER_KEYWORDS)

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        query = build_search_query(subject)
        resp = await client.get(
            f"{self.config.base_url}{self.SEARCH_PATH}",
            params={"query": query},
            headers={
                "x-rapidapi-host": self.config.host,
                "x-rapidapi-key": self.config.api_key.get_secret_value(),
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        products = (resp.json().get("products") or [])[: self.config.search_limit]
        priced = [
            p for p in products
            if dollars_to_cents((p.get("market") or {}).get("lastSale")) > 0
        ]
        if not priced:
            return self._absent(subject, f"no sold products for {query!r}")

        names = subject_names(subject)
        strong = [
            p for p in priced
            if is_strong_match((p.get("product") or {}).get("title") or "", names)
        ]
        if len(strong) != 1:
            return self._absent(
                subject, f"{len(strong)} strong product matches among {len(priced)}; need exactly one"
            )

        product = strong[0].get("product") or {}
        market = strong[0]["market"]
        price = dollars_to_cents(market.get(self.price_field_for(subject.condition)))
        if price <= 0:
            price = dollars_to_cents(market.get(self.DEFAULT_PRICE_FIELD))

        sales_72h = market.get("salesLast72Hours")
        sample = int(sales_72h) if isinstance(sales_72h, (int, float)) and sales_72h > 0 else 1

        return SourceObservation(
            provider=self.provider,
            price_cents=price,
            weight=self.WEIGHT,
            confidence=self.CONFIDENCE,
            sample_size=sample,
            observed_at=utcnow(),
            provider_item_id=_product_id(product),
            label=product.get("title"),
            raw={
                "title": product.get("title"),
                "brand": product.get("brand"),
                "styleId": product.get("styleId"),
                "market": market,
            },
        )


def _product_id(product: dict) -> Optional[str]:
    value = product.get("uuid") or product.get("id")
    return str(value) if value is not None else None

