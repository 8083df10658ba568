"""
Controlled vocabularies for collectible valuation.

``ItemCategory`` and ``ItemCondition`` describe the item being valued.
``Provider`` names each external pricing source; its member order is the
fixed order in which sources are invoked and reported. ``Trend``,
``Volatility`` and ``ValueSource`` label valuation outputs.

This module has NO imports from any other ``valuation_engine`` package.
"""

from enum import StrEnum


class ItemCategory(StrEnum):
    """Broad product category of a collectible."""

    VIDEO_GAMES = "video_games"
    """Cartridges, discs and consoles; the catalog provider's home turf."""

    TRADING_CARDS = "trading_cards"
    """Pokémon, Magic, Yu-Gi-Oh, Lorcana and other TCG singles and sealed product."""

    SNEAKERS = "sneakers"
    """Resale-market footwear."""

    ELECTRONICS = "electronics"

    COLLECTIBLES = "collectibles"
    """Figures, toys and general memorabilia."""

    OTHER = "other"


class ItemCondition(StrEnum):
    """Physical condition of a collectible."""

    NEW_SEALED = "NEW_SEALED"
    """Factory sealed, never opened."""

    COMPLETE_IN_BOX = "CIB"
    """Opened, but with box, manual and all inserts."""

    LOOSE = "LOOSE"
    """Item only; no box or packaging."""

    GRADED = "GRADED"
    """Professionally graded and slabbed (PSA, CGC, BGS, ...)."""

    OTHER = "OTHER"


class Provider(StrEnum):
    """External pricing source. Declaration order is invocation order."""

    PRICECHARTING = "pricecharting"
    """Catalog lookup by linked product id; condition-specific price fields."""

    EBAY = "ebay"
    """Official eBay Marketplace Insights sold-item search (OAuth)."""

    EBAY_SCRAPER = "ebay_scraper"
    """Third-party completed-listings scraper hosted on RapidAPI."""

    JUSTTCG = "justtcg"
    """Trading card market prices."""

    STOCKX = "stockx"
    """Sneaker market data (last sale, lowest ask, highest bid)."""


class Trend(StrEnum):
    """Direction of recent sale prices versus older ones."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Volatility(StrEnum):
    """Dispersion of sale prices (coefficient of variation bucket)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ValueSource(StrEnum):
    """Where a subject's current market value came from."""

    API = "api"
    """Single-source valuation from the catalog provider."""

    CONSOLIDATED = "consolidated"
    """Weighted blend of several providers."""

    CACHED = "cached"
    """Served from a live cache entry; never stored on a subject."""

    USER_OVERRIDE = "user_override"
    """Manually set by the owner after a valuation existed."""

    USER_DEFINED = "user_defined"
    """Value entered when the item was added."""
