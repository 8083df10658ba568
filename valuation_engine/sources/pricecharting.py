"""
Catalog-price adapter (PriceCharting).

Looks up a linked product id and reads the price tier matching the subject's
condition. Prices come back in cents already. The catalog is a curated
database, so confidence and weight are fixed.

Credential: ``PRICECHARTING_API_TOKEN`` (exactly 40 characters).

Endpoints:
  GET {base}/api/product?t=<token>&id=<product id>
  GET {base}/api/products?t=<token>&q=<query>
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional

import httpx

from valuation_engine.config import PriceChartingConfig
from valuation_engine.models.results import CatalogSearchHit
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.sources.base import SourceAdapter
from valuation_engine.taxonomy.valuation_taxonomy import ItemCondition, Provider
from valuation_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PriceChartingAdapter(SourceAdapter):
    """Catalog lookup by linked product id."""

    provider: ClassVar[Provider] = Provider.PRICECHARTING
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {
        ItemCondition.LOOSE:           "loose-price",
        ItemCondition.COMPLETE_IN_BOX: "cib-price",
        ItemCondition.NEW_SEALED:      "new-price",
        ItemCondition.GRADED:          "graded-price",
        ItemCondition.OTHER:           "loose-price",
    }
    DEFAULT_PRICE_FIELD: ClassVar[str] = "loose-price"

    TOKEN_LENGTH: ClassVar[int] = 40
    CONFIDENCE: ClassVar[int] = 85
    WEIGHT: ClassVar[float] = 0.4

    config: PriceChartingConfig

    def __init__(self, config: PriceChartingConfig) -> None:
        super().__init__(config)

    def is_available(self) -> bool:
        token = self.config.api_token.get_secret_value()
        return self.config.enabled and len(token) == self.TOKEN_LENGTH

    def is_applicable(self, subject: Subject) -> bool:
        return subject.is_linked

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        resp = await client.get(
            f"{self.config.base_url}/api/product",
            params={"t": self.config.api_token.get_secret_value(), "id": subject.catalog_product_id},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        if data.get("status") != "success":
            return self._absent(subject, f"status={data.get('status')!r}")

        price = self.price_for(data, subject.condition)
        if price <= 0:
            return self._absent(subject, f"no price for condition {subject.condition}")

        return SourceObservation(
            provider=self.provider,
            price_cents=price,
            weight=self.WEIGHT,
            confidence=self.CONFIDENCE,
            sample_size=1,
            observed_at=utcnow(),
            provider_item_id=str(data.get("id") or subject.catalog_product_id),
            label=data.get("product-name"),
            raw={k: v for k, v in data.items() if k.endswith("-price") or k.endswith("-name")},
        )

    def price_for(self, data: dict[str, Any], condition: ItemCondition) -> int:
        """Price in cents for ``condition``; missing or zero tiers fall back to loose."""
        value = _as_cents(data.get(self.price_field_for(condition)))
        if value <= 0:
            value = _as_cents(data.get(self.DEFAULT_PRICE_FIELD))
        return value

    async def search_products(
        self, query: str, client: httpx.AsyncClient
    ) -> list[CatalogSearchHit]:
        """Search the catalog; empty when unavailable or on any failure."""
        if not self.is_available() or not query.strip():
            return []
        try:
            resp = await client.get(
                f"{self.config.base_url}/api/products",
                params={"t": self.config.api_token.get_secret_value(), "q": query.strip()},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[%s] catalog search %r failed: %s", self.provider, query, exc)
            return []

        if not isinstance(data, dict) or data.get("status") != "success":
            return []
        return [
            CatalogSearchHit(
                provider_product_id=str(p["id"]),
                display_name=p["product-name"],
                secondary_name=p.get("console-name"),
            )
            for p in data.get("products", [])
            if p.get("id") and p.get("product-name")
        ]


def _as_cents(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
