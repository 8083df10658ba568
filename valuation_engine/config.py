"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — provider credentials and env overrides (gitignored)
  4. Environment variables        — ``VALUATION_ENGINE_*`` prefix plus provider
                                    credential variables

Entry point: ``load_config(config_path=None) -> AppConfig``

Provider credentials are read ONLY from the environment, never from TOML, and
are held as ``SecretStr`` so that ``validate-config --full`` never prints them.
"""

from __future__ import annotations

import os
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

from valuation_engine.taxonomy.valuation_taxonomy import Provider

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/valuations.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/valuation.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class CacheConfig(BaseModel):
    """Time-to-live settings for cached valuations, in hours."""

    model_config = ConfigDict(frozen=True)

    consolidated_ttl_hours: float = 24.0
    pricecharting_ttl_hours: float = 24.0
    ebay_ttl_hours: float = 2.0
    ebay_scraper_ttl_hours: float = 2.0
    justtcg_ttl_hours: float = 1.0
    stockx_ttl_hours: float = 0.5

    @field_validator(
        "consolidated_ttl_hours",
        "pricecharting_ttl_hours",
        "ebay_ttl_hours",
        "ebay_scraper_ttl_hours",
        "justtcg_ttl_hours",
        "stockx_ttl_hours",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Cache TTL must be > 0 hours, got {v}.")
        return v

    @property
    def consolidated_ttl(self) -> timedelta:
        return timedelta(hours=self.consolidated_ttl_hours)

    def provider_ttl(self, provider: Provider) -> timedelta:
        """TTL for a single provider's cached observation."""
        return timedelta(hours=getattr(self, f"{Provider(provider).value}_ttl_hours"))


class SourceConfig(BaseModel):
    """Settings shared by every pricing provider."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    base_url: str = ""
    timeout_seconds: float = 10.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {v}.")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class PriceChartingConfig(SourceConfig):
    """Catalog provider. Token env var: ``PRICECHARTING_API_TOKEN``."""

    base_url: str = "https://www.pricecharting.com"
    api_token: SecretStr = SecretStr("")


class EbayConfig(SourceConfig):
    """Official eBay Marketplace Insights.

    Credential env vars: ``EBAY_APP_ID``, ``EBAY_CERT_ID``, ``EBAY_ENVIRONMENT``.
    """

    app_id: SecretStr = SecretStr("")
    cert_id: SecretStr = SecretStr("")
    environment: str = "SANDBOX"
    production_url: str = "https://api.ebay.com"
    sandbox_url: str = "https://api.sandbox.ebay.com"
    marketplace_id: str = "EBAY_US"
    max_results: int = 50

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid = {"SANDBOX", "PRODUCTION"}
        if v.upper() not in valid:
            raise ValueError(f"eBay environment must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()

    @property
    def api_url(self) -> str:
        return self.production_url if self.environment == "PRODUCTION" else self.sandbox_url


class EbayScraperConfig(SourceConfig):
    """RapidAPI completed-listings scraper. Key env var: ``RAPIDAPI_KEY``."""

    api_key: SecretStr = SecretStr("")
    host: str = "ebay-average-selling-price.p.rapidapi.com"
    base_url: str = "https://ebay-average-selling-price.p.rapidapi.com"
    timeout_seconds: float = 15.0
    max_results: int = 25


class JustTcgConfig(SourceConfig):
    """Trading card prices. Key env var: ``JUSTTCG_API_KEY``."""

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://api.justtcg.com/v1"
    search_limit: int = 10


class StockxConfig(SourceConfig):
    """Sneaker market data via RapidAPI.

    Key env var: ``STOCKX_RAPIDAPI_KEY``, falling back to ``RAPIDAPI_KEY``.
    """

    api_key: SecretStr = SecretStr("")
    host: str = "stockx-market-data.p.rapidapi.com"
    base_url: str = "https://stockx-market-data.p.rapidapi.com"
    search_limit: int = 10


class SourcesConfig(BaseModel):
    """One section per pricing provider."""

    model_config = ConfigDict(frozen=True)

    pricecharting: PriceChartingConfig = PriceChartingConfig()
    ebay: EbayConfig = EbayConfig()
    ebay_scraper: EbayScraperConfig = EbayScraperConfig()
    justtcg: JustTcgConfig = JustTcgConfig()
    stockx: StockxConfig = StockxConfig()

    def credential_values(self) -> list[str]:
        """Every non-empty credential, for log redaction."""
        values: list[str] = []
        for section in (self.pricecharting, self.ebay, self.ebay_scraper, self.justtcg, self.stockx):
            for name in type(section).model_fields:
                field_value = getattr(section, name)
                if isinstance(field_value, SecretStr) and field_value.get_secret_value():
                    values.append(field_value.get_secret_value())
        return values


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    cache: CacheConfig = CacheConfig()
    sources: SourcesConfig = SourcesConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent

# Environment variable → (sources section, field)
_CREDENTIAL_ENV_VARS: dict[str, tuple[str, str]] = {
    "PRICECHARTING_API_TOKEN": ("pricecharting", "api_token"),
    "EBAY_APP_ID":             ("ebay", "app_id"),
    "EBAY_CERT_ID":            ("ebay", "cert_id"),
    "EBAY_ENVIRONMENT":        ("ebay", "environment"),
    "RAPIDAPI_KEY":            ("ebay_scraper", "api_key"),
    "JUSTTCG_API_KEY":         ("justtcg", "api_key"),
}


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variables to the raw config dict.

    Supported overrides:
      VALUATION_ENGINE_DB_PATH    → raw["database"]["db_path"]
      VALUATION_ENGINE_LOG_LEVEL  → raw["logging"]["level"]
      VALUATION_ENGINE_DEBUG      → raw["debug"]
      provider credentials        → raw["sources"][<provider>][<field>]
    """
    if db_path := os.environ.get("VALUATION_ENGINE_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("VALUATION_ENGINE_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("VALUATION_ENGINE_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    sources = raw.setdefault("sources", {})
    for env_var, (section, field) in _CREDENTIAL_ENV_VARS.items():
        if value := os.environ.get(env_var):
            sources.setdefault(section, {})[field] = value.strip()

    stockx_key = os.environ.get("STOCKX_RAPIDAPI_KEY") or os.environ.get("RAPIDAPI_KEY")
    if stockx_key:
        sources.setdefault("stockx", {})["api_key"] = stockx_key.strip()

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})
    sources = raw.get("sources", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        cache=CacheConfig(**raw.get("cache", {})),
        sources=SourcesConfig(
            pricecharting=PriceChartingConfig(**sources.get("pricecharting", {})),
            ebay=EbayConfig(**sources.get("ebay", {})),
            ebay_scraper=EbayScraperConfig(**sources.get("ebay_scraper", {})),
            justtcg=JustTcgConfig(**sources.get("justtcg", {})),
            stockx=StockxConfig(**sources.get("stockx", {})),
        ),
        debug=raw.get("debug", project.get("debug", False)),
    )
