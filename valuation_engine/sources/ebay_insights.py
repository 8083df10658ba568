"""
Official eBay sold-listings adapter (Marketplace Insights API).

Uses OAuth2 client credentials; the application token is cached on the
adapter until five minutes before it expires. Sold prices are quoted in
dollars and converted to cents before statistics are computed.

Credentials: ``EBAY_APP_ID``, ``EBAY_CERT_ID``; ``EBAY_ENVIRONMENT`` selects
the sandbox (default) or production host.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import ClassVar, Optional

import httpx

from valuation_engine.config import EbayConfig
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


class EbayInsightsAdapter(SourceAdapter):
    """Sold-item search against eBay Marketplace Insights."""

    provider: ClassVar[Provider] = Provider.EBAY
    # Values are eBay condition filter ids.
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {
        ItemCondition.NEW_SEALED:      "1000",
        ItemCondition.GRADED:          "2750",
        ItemCondition.COMPLETE_IN_BOX: "3000",
        ItemCondition.LOOSE:           "3000",
        ItemCondition.OTHER:           "3000",
    }
    DEFAULT_PRICE_FIELD: ClassVar[str] = "3000"

    TOKEN_PATH: ClassVar[str] = "/identity/v1/oauth2/token"
    SEARCH_PATH: ClassVar[str] = "/buy/marketplace_insights/v1_beta/item_sales/search"
    OAUTH_SCOPE: ClassVar[str] = "https://api.ebay.com/oauth/api_scope/buy.marketplace.insights"
    TOKEN_REFRESH_MARGIN: ClassVar[timedelta] = timedelta(minutes=5)

    CONFIDENCE_BASE: ClassVar[int] = 60
    CONFIDENCE_CEILING: ClassVar[int] = 95
    WEIGHT_TIERS: ClassVar[tuple[tuple[int, float], ...]] = ((10, 0.7), (5, 0.6), (0, 0.4))

    config: EbayConfig

    def __init__(self, config: EbayConfig) -> None:
        super().__init__(config)
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    def is_available(self) -> bool:
        return (
            self.config.enabled
            and bool(self.config.app_id.get_secret_value())
            and bool(self.config.cert_id.get_secret_value())
        )

    def is_applicable(self, subject: Subject) -> bool:
        return has_searchable_title(subject)

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        token = await self._ensure_token(client)
        query = build_search_query(subject)
        resp = await client.get(
            f"{self.config.api_url}{self.SEARCH_PATH}",
            params={
                "q": query,
                "limit": self.config.max_results,
                "filter": f"conditions:{{{self.price_field_for(subject.condition)}}}",
            },
            headers={
                "Authorization": f"Bearer {token}",
                "X-EBAY-C-MARKETPLACE-ID": self.config.marketplace_id,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        sales = [
            SoldSale(
                price_cents=dollars_to_cents((item.get("price") or {}).get("value")),
                sold_at=parse_sale_date(item.get("lastSoldDate")),
            )
            for item in data.get("itemSales") or []
        ]
        now = utcnow()
        stats = compute_sold_stats(sales, now)
        if stats is None:
            return self._absent(subject, f"no sold listings for {query!r}")

        return SourceObservation(
            provider=self.provider,
            price_cents=stats.average_cents,
            weight=weight_for_sample(stats.sample_size, self.WEIGHT_TIERS),
            confidence=confidence_for_sample(
                stats.sample_size, self.CONFIDENCE_BASE, self.CONFIDENCE_CEILING
            ),
            sample_size=stats.sample_size,
            observed_at=now,
            label=query,
            trend=stats.trend,
            volatility=stats.volatility,
            raw={
                "query": query,
                "median_cents": stats.median_cents,
                "min_cents": stats.min_cents,
                "max_cents": stats.max_cents,
                "total": data.get("total"),
            },
        )

    # ── Token management ───────────────────────────────────────────────────────

    async def _ensure_token(self, client: httpx.AsyncClient) -> str:
        """Return a cached application token, fetching a new one near expiry.

        Raises:
            httpx.HTTPStatusError: If the token endpoint returns a non-2xx status.
        """
        now = utcnow()
        if (
            self._access_token is not None
            and self._token_expires_at is not None
            and now < self._token_expires_at - self.TOKEN_REFRESH_MARGIN
        ):
            return self._access_token

        resp = await client.post(
            f"{self.config.api_url}{self.TOKEN_PATH}",
            auth=(
                self.config.app_id.get_secret_value(),
                self.config.cert_id.get_secret_value(),
            ),
            data={"grant_type": "client_credentials", "scope": self.OAUTH_SCOPE},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        self._access_token = payload["access_token"]
        self._token_expires_at = now + timedelta(seconds=int(payload.get("expires_in", 7200)))
        logger.info("eBay OAuth2 token obtained (environment=%s)", self.config.environment)
        return self._access_token
