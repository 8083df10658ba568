"""Tests for the official and scraped eBay sold-listings adapters."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import httpx
from pydantic import SecretStr

from valuation_engine.config import EbayConfig, EbayScraperConfig
from valuation_engine.models.subject import Subject
from valuation_engine.sources.ebay_insights import EbayInsightsAdapter
from valuation_engine.sources.ebay_scraper import EbayScraperAdapter
from valuation_engine.taxonomy.valuation_taxonomy import ItemCondition, Provider, Trend
from valuation_engine.utils.time_utils import utcnow

from source_fakes import RecordingTransport, json_response, run_fetch

SUBJECT = Subject(subject_id=1, title="Super Mario 64", condition=ItemCondition.NEW_SEALED)


def _insights_handler(prices, token_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            if token_status != 200:
                return httpx.Response(token_status)
            return json_response({"access_token": "tok-123", "expires_in": 7200})
        sold = (utcnow() - timedelta(days=1)).isoformat()
        return json_response(
            {
                "total": len(prices),
                "itemSales": [
                    {"price": {"value": f"{p:.2f}", "currency": "USD"}, "lastSoldDate": sold}
                    for p in prices
                ],
            }
        )

    return handler


class TestEbayInsightsAdapter:
    def test_availability_needs_both_credentials(self):
        assert EbayInsightsAdapter(EbayConfig(app_id=SecretStr("a"), cert_id=SecretStr("c"))).is_available()
        assert not EbayInsightsAdapter(EbayConfig(app_id=SecretStr("a"))).is_available()

    def test_applicability_by_title_length(self, ebay_config):
        adapter = EbayInsightsAdapter(ebay_config)
        assert adapter.is_applicable(SUBJECT)
        assert not adapter.is_applicable(Subject(title="ab"))

    def test_condition_filter_ids(self, ebay_config):
        adapter = EbayInsightsAdapter(ebay_config)
        assert adapter.price_field_for(ItemCondition.NEW_SEALED) == "1000"
        assert adapter.price_field_for(ItemCondition.GRADED) == "2750"
        assert adapter.price_field_for(ItemCondition.LOOSE) == "3000"

    def test_success(self, ebay_config):
        obs, transport = run_fetch(
            EbayInsightsAdapter(ebay_config), SUBJECT, _insights_handler([30.0, 40.0, 50.0])
        )
        assert obs.provider == Provider.EBAY
        assert obs.price_cents == 4000
        assert obs.sample_size == 3
        assert obs.confidence == 66
        assert obs.weight == 0.4
        assert obs.trend == Trend.STABLE

        token_req, search_req = transport.requests
        assert token_req.method == "POST"
        assert token_req.url.host == "api.sandbox.ebay.com"
        assert search_req.headers["Authorization"] == "Bearer tok-123"
        assert search_req.headers["X-EBAY-C-MARKETPLACE-ID"] == "EBAY_US"
        assert search_req.url.params["filter"] == "conditions:{1000}"
        assert search_req.url.params["q"] == "super mario 64"

    def test_weight_and_confidence_tiers(self, ebay_config):
        obs, _ = run_fetch(EbayInsightsAdapter(ebay_config), SUBJECT, _insights_handler([20.0] * 12))
        assert obs.weight == 0.7
        assert obs.confidence == 84

    def test_token_reused_between_fetches(self, ebay_config):
        adapter = EbayInsightsAdapter(ebay_config)
        transport = RecordingTransport(_insights_handler([25.0]))

        async def _go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(transport)) as client:
                await adapter.fetch(SUBJECT, client)
                await adapter.fetch(SUBJECT, client)

        asyncio.run(_go())
        token_calls = [r for r in transport.requests if r.url.path.endswith("/oauth2/token")]
        assert len(token_calls) == 1
        assert len(transport.requests) == 3

    def test_token_failure_returns_none(self, ebay_config):
        obs, transport = run_fetch(
            EbayInsightsAdapter(ebay_config), SUBJECT, _insights_handler([25.0], token_status=401)
        )
        assert obs is None
        assert len(transport.requests) == 1

    def test_non_object_search_body_returns_none(self, ebay_config):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/oauth2/token"):
                return json_response({"access_token": "tok-123", "expires_in": 7200})
            return json_response([{"price": {"value": "10.00"}}])

        obs, _ = run_fetch(EbayInsightsAdapter(ebay_config), SUBJECT, handler)
        assert obs is None

    def test_no_sales_returns_none(self, ebay_config):
        obs, _ = run_fetch(EbayInsightsAdapter(ebay_config), SUBJECT, _insights_handler([]))
        assert obs is None


class TestEbayScraperAdapter:
    def test_key_length(self):
        assert not EbayScraperAdapter(EbayScraperConfig(api_key=SecretStr("short"))).is_available()
        assert EbayScraperAdapter(EbayScraperConfig(api_key=SecretStr("k" * 11))).is_available()

    def test_keywords_carry_condition_suffix(self, scraper_config):
        adapter = EbayScraperAdapter(scraper_config)
        assert adapter.keywords_for(SUBJECT) == "super mario 64 sealed"
        loose = Subject(subject_id=2, title="Super Mario 64", condition=ItemCondition.LOOSE)
        assert adapter.keywords_for(loose) == "super mario 64"

    def test_success(self, scraper_config):
        payload = {
            "products": [
                {"title": "Mario 64 sealed", "sale_price": 100.0, "date_sold": "2026-01-01"},
                {"title": "Mario 64 sealed", "sale_price": "120.50"},
                {"title": "junk", "sale_price": 0},
            ]
        }
        obs, transport = run_fetch(
            EbayScraperAdapter(scraper_config), SUBJECT, lambda r: json_response(payload)
        )
        assert obs.provider == Provider.EBAY_SCRAPER
        assert obs.price_cents == 11025
        assert obs.sample_size == 2
        assert obs.confidence == 59
        assert obs.weight == 0.3

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/findCompletedItems"
        assert request.headers["x-rapidapi-key"] == "r" * 20
        assert json.loads(request.content) == {
            "keywords": "super mario 64 sealed",
            "max_search_results": 25,
        }

    def test_non_object_body_returns_none(self, scraper_config):
        obs, _ = run_fetch(
            EbayScraperAdapter(scraper_config), SUBJECT, lambda r: json_response(["unexpected"])
        )
        assert obs is None

    def test_empty_products_returns_none(self, scraper_config):
        obs, _ = run_fetch(
            EbayScraperAdapter(scraper_config), SUBJECT, lambda r: json_response({"products": []})
        )
        assert obs is None
