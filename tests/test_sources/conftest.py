"""Configured adapter settings for source adapter tests."""

from __future__ import annotations

import pytest
from pydantic import SecretStr

from valuation_engine.config import (
    EbayConfig,
    EbayScraperConfig,
    JustTcgConfig,
    PriceChartingConfig,
    StockxConfig,
)


@pytest.fixture
def pricecharting_config() -> PriceChartingConfig:
    return PriceChartingConfig(api_token=SecretStr("p" * 40))


@pytest.fixture
def ebay_config() -> EbayConfig:
    return EbayConfig(app_id=SecretStr("app-id"), cert_id=SecretStr("cert-id"))


@pytest.fixture
def scraper_config() -> EbayScraperConfig:
    return EbayScraperConfig(api_key=SecretStr("r" * 20))


@pytest.fixture
def justtcg_config() -> JustTcgConfig:
    return JustTcgConfig(api_key=SecretStr("j" * 20))


@pytest.fixture
def stockx_config() -> StockxConfig:
    return StockxConfig(api_key=SecretStr("s" * 20))
