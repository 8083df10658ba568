"""
Trading-card adapter (JustTCG).

Searches cards by name and contributes only when exactly one candidate is a
strong name match for the subject. Prices are quoted in dollars per printing
(``normal`` / ``foil``), each with ``market``, ``low``, ``mid`` and ``high``
tiers.

Credential: ``JUSTTCG_API_KEY`` (longer than 10 characters).
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional

import httpx

from valuation_engine.config import JustTcgConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.sources.base import (
    SourceAdapter,
    is_strong_match,
    matches_vocabulary,
    normalize_name,
    subject_names,
)
from valuation_engine.sources.query import build_search_query
from valuation_engine.taxonomy.valuation_taxonomy import ItemCategory, ItemCondition, Provider
from valuation_engine.utils.money import dollars_to_cents
from valuation_engine.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

CARD_KEYWORDS: tuple[str, ...] = (
    "pokemon", "pokémon", "psa", "cgc", "bgs", "magic", "mtg", "yugioh", "yu-gi-oh",
    "lorcana", "one piece", "holo", "holographic", "charizard", "pikachu",
    "base set", "shadowless", "foil", "rare", "ultra rare", "full art",
    "booster", "pack", "box", "etb", "tcg", "card", "cards",
)

_FOIL_WORDS = frozenset({"foil", "holo", "holographic", "reverse"})


class JustTcgAdapter(SourceAdapter):
    """Card market prices for trading-card subjects."""

    provider: ClassVar[Provider] = Provider.JUSTTCG
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {
        ItemCondition.GRADED:          "high",
        ItemCondition.NEW_SEALED:      "market",
        ItemCondition.COMPLETE_IN_BOX: "market",
        ItemCondition.LOOSE:           "mid",
        ItemCondition.OTHER:           "market",
    }
    DEFAULT_PRICE_FIELD: ClassVar[str] = "market"

    SEARCH_PATH: ClassVar[str] = "/cards/search"
    MIN_KEY_LENGTH: ClassVar[int] = 10
    CONFIDENCE: ClassVar[int] = 90
    WEIGHT: ClassVar[float] = 0.8

    config: JustTcgConfig

    def __init__(self, config: JustTcgConfig) -> None:
        super().__init__(config)

    def is_available(self) -> bool:
        return (
            self.config.enabled
            and len(self.config.api_key.get_secret_value()) > self.MIN_KEY_LENGTH
        )

    def is_applicable(self, subject: Subject) -> bool:
        return matches_vocabulary(subject, ItemCategory.TRADING_CARDS, CARD_KEYWORDS)

    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        query = build_search_query(subject)
        resp = await client.get(
            f"{self.config.base_url}{self.SEARCH_PATH}",
            params={"q": query, "limit": self.config.search_limit},
            headers={"Authorization": f"Bearer {self.config.api_key.get_secret_value()}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        cards = resp.json().get("cards") or []
        if not cards:
            return self._absent(subject, f"no cards for {query!r}")

        names = subject_names(subject)
        strong = [c for c in cards if is_strong_match(c.get("name") or "", names)]
        if len(strong) != 1:
            return self._absent(
                subject, f"{len(strong)} strong card matches among {len(cards)}; need exactly one"
            )

        card = strong[0]
        tier = _printing_prices(card, subject)
        price = dollars_to_cents(tier.get(self.price_field_for(subject.condition)))
        if price <= 0:
            price = dollars_to_cents(tier.get(self.DEFAULT_PRICE_FIELD))
        if price <= 0:
            return self._absent(subject, f"card {card.get('name')!r} has no market price")

        return SourceObservation(
            provider=self.provider,
            price_cents=price,
            weight=self.WEIGHT,
            confidence=self.CONFIDENCE,
            sample_size=1,
            observed_at=utcnow(),
            provider_item_id=str(card.get("id")) if card.get("id") is not None else None,
            label=card.get("name"),
            raw={
                "name": card.get("name"),
                "set": card.get("setName") or card.get("set"),
                "prices": tier,
            },
        )


def _printing_prices(card: dict[str, Any], subject: Subject) -> dict[str, Any]:
    """Pick the foil printing for foil-looking titles, else normal (foil as fallback)."""
    prices = card.get("prices") or {}
    normal = prices.get("normal") or {}
    foil = prices.get("foil") or {}
    wants_foil = bool(_FOIL_WORDS & set(normalize_name(subject.title).split()))
    if wants_foil and foil:
        return foil
    return normal or foil
