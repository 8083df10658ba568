"""Tests for layered configuration loading."""

from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from valuation_engine.config import (
    AppConfig,
    CacheConfig,
    EbayConfig,
    LoggingConfig,
    SourceConfig,
    load_config,
)
from valuation_engine.taxonomy.valuation_taxonomy import Provider

_CREDENTIAL_VARS = (
    "PRICECHARTING_API_TOKEN",
    "EBAY_APP_ID",
    "EBAY_CERT_ID",
    "EBAY_ENVIRONMENT",
    "RAPIDAPI_KEY",
    "JUSTTCG_API_KEY",
    "STOCKX_RAPIDAPI_KEY",
    "VALUATION_ENGINE_DB_PATH",
    "VALUATION_ENGINE_LOG_LEVEL",
    "VALUATION_ENGINE_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for var in _CREDENTIAL_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "default.toml"
    path.write_text(
        """
[project]
debug = true

[database]
db_path = "data/db/test.db"

[cache]
ebay_ttl_hours = 3

[sources.ebay]
environment = "PRODUCTION"
""",
        encoding="utf-8",
    )
    return path


class TestLoadConfig:
    def test_missing_file_raises(self, clean_env, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.toml")

    def test_toml_values_applied(self, clean_env, config_file):
        config = load_config(config_file)
        assert config.database.db_path == "data/db/test.db"
        assert config.debug is True
        assert config.cache.ebay_ttl_hours == 3
        assert config.sources.ebay.api_url == "https://api.ebay.com"

    def test_local_toml_overrides(self, clean_env, config_file):
        (config_file.parent / "local.toml").write_text(
            '[database]\ndb_path = "local.db"\n', encoding="utf-8"
        )
        assert load_config(config_file).database.db_path == "local.db"

    def test_env_overrides(self, clean_env, config_file):
        clean_env.setenv("VALUATION_ENGINE_DB_PATH", "/tmp/env.db")
        clean_env.setenv("VALUATION_ENGINE_LOG_LEVEL", "debug")
        clean_env.setenv("VALUATION_ENGINE_DEBUG", "no")
        config = load_config(config_file)
        assert config.database.db_path == "/tmp/env.db"
        assert config.logging.level == "DEBUG"
        assert config.debug is False

    def test_credentials_from_env(self, clean_env, config_file):
        clean_env.setenv("PRICECHARTING_API_TOKEN", "t" * 40)
        clean_env.setenv("EBAY_APP_ID", "app")
        clean_env.setenv("EBAY_CERT_ID", "cert")
        clean_env.setenv("JUSTTCG_API_KEY", "j" * 20)
        config = load_config(config_file)
        assert config.sources.pricecharting.api_token.get_secret_value() == "t" * 40
        assert config.sources.ebay.app_id.get_secret_value() == "app"
        assert config.sources.justtcg.api_key.get_secret_value() == "j" * 20

    def test_stockx_falls_back_to_rapidapi_key(self, clean_env, config_file):
        clean_env.setenv("RAPIDAPI_KEY", "r" * 20)
        config = load_config(config_file)
        assert config.sources.stockx.api_key.get_secret_value() == "r" * 20
        assert config.sources.ebay_scraper.api_key.get_secret_value() == "r" * 20

        clean_env.setenv("STOCKX_RAPIDAPI_KEY", "s" * 20)
        assert load_config(config_file).sources.stockx.api_key.get_secret_value() == "s" * 20

    def test_secrets_hidden_in_dump(self, clean_env, config_file):
        clean_env.setenv("PRICECHARTING_API_TOKEN", "t" * 40)
        dumped = load_config(config_file).model_dump_json()
        assert "t" * 40 not in dumped


class TestSubConfigs:
    def test_defaults(self):
        config = AppConfig()
        assert config.database.db_path == "data/db/valuations.db"
        assert config.sources.ebay.environment == "SANDBOX"
        assert config.sources.ebay.api_url == "https://api.sandbox.ebay.com"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="Log level"):
            LoggingConfig(level="LOUD")

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValidationError, match="TTL"):
            CacheConfig(stockx_ttl_hours=0)

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError, match="timeout_seconds"):
            SourceConfig(timeout_seconds=0)

    def test_invalid_ebay_environment(self):
        with pytest.raises(ValidationError, match="environment"):
            EbayConfig(environment="STAGING")

    def test_provider_ttls(self):
        cache = CacheConfig()
        assert cache.consolidated_ttl == timedelta(hours=24)
        assert cache.provider_ttl(Provider.PRICECHARTING) == timedelta(hours=24)
        assert cache.provider_ttl(Provider.EBAY) == timedelta(hours=2)
        assert cache.provider_ttl(Provider.JUSTTCG) == timedelta(hours=1)
        assert cache.provider_ttl(Provider.STOCKX) == timedelta(minutes=30)

    def test_base_url_trailing_slash_stripped(self):
        assert SourceConfig(base_url="https://example.com/").base_url == "https://example.com"

    def test_credential_values(self, clean_env, config_file):
        clean_env.setenv("EBAY_APP_ID", "app-id")
        clean_env.setenv("EBAY_CERT_ID", "cert-id")
        clean_env.setenv("RAPIDAPI_KEY", "r" * 20)
        values = load_config(config_file).sources.credential_values()
        assert sorted(values) == sorted(["app-id", "cert-id", "r" * 20, "r" * 20])
