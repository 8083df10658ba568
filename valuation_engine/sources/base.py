"""
Shared adapter contract and name-matching helpers.

Subclasses implement ``is_available()``, optionally ``is_applicable()``, and
``_fetch()``. The public ``fetch()`` wraps ``_fetch()`` and turns every
provider failure (network error, non-2xx status, unparsable or empty
payload) into ``None`` with a WARNING naming the provider and the cause.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import ClassVar, Optional

import httpx

from valuation_engine.config import SourceConfig
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.taxonomy.valuation_taxonomy import ItemCategory, ItemCondition, Provider

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


class SourceAdapter(ABC):
    """Uniform wrapper around one external pricing provider.

    Class attributes:
        provider: The ``Provider`` this adapter speaks for.
        CONDITION_PRICE_FIELDS: Explicit condition → provider price tier table.
        DEFAULT_PRICE_FIELD: Tier used for conditions missing from the table.
    """

    provider: ClassVar[Provider]
    CONDITION_PRICE_FIELDS: ClassVar[dict[ItemCondition, str]] = {}
    DEFAULT_PRICE_FIELD: ClassVar[str] = ""

    def __init__(self, config: SourceConfig) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """True iff the provider is enabled and its credentials are well-formed."""

    def is_applicable(self, subject: Subject) -> bool:
        return True

    def price_field_for(self, condition: ItemCondition) -> str:
        return self.CONDITION_PRICE_FIELDS.get(condition, self.DEFAULT_PRICE_FIELD)

    async def fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        """Query the provider for ``subject``; ``None`` on any failure."""
        try:
            return await self._fetch(subject, client)
        except httpx.HTTPStatusError as exc:
            cause = f"HTTP {exc.response.status_code}"
        except httpx.HTTPError as exc:
            cause = f"{type(exc).__name__}: {exc}"
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            cause = f"unparsable response ({type(exc).__name__}: {exc})"
        logger.warning("[%s] subject=%s failed: %s", self.provider, subject.subject_id, cause)
        return None

    @abstractmethod
    async def _fetch(
        self, subject: Subject, client: httpx.AsyncClient
    ) -> Optional[SourceObservation]:
        """Provider-specific request and translation."""

    def _absent(self, subject: Subject, cause: str) -> None:
        """Log why the provider had no answer and return ``None``."""
        logger.warning("[%s] subject=%s no data: %s", self.provider, subject.subject_id, cause)
        return None

    @property
    def timeout(self) -> float:
        return self.config.timeout_seconds


# ── Name matching ──────────────────────────────────────────────────────────────

def normalize_name(text: str) -> str:
    """Lower-case, strip punctuation, collapse whitespace."""
    return " ".join(_NON_ALNUM.sub(" ", text.lower()).split())


def is_strong_match(candidate: str, subject_names: Iterable[str]) -> bool:
    """A candidate is strong when it contains, or is contained in, a subject name.

    Containment is checked on whole words.
    """
    cand = normalize_name(candidate)
    if not cand:
        return False
    for name in subject_names:
        norm = normalize_name(name)
        if not norm:
            continue
        if f" {cand} " in f" {norm} " or f" {norm} " in f" {cand} ":
            return True
    return False


def subject_names(subject: Subject) -> list[str]:
    """Names a provider candidate may be matched against."""
    names = [subject.title]
    if subject.catalog_name:
        names.append(subject.catalog_name)
    return names


def matches_vocabulary(
    subject: Subject,
    category: ItemCategory,
    keywords: Iterable[str],
) -> bool:
    """Category routing with a keyword fallback on the title.

    Multi-word keywords match as phrases; single words match whole words.
    """
    if subject.category == category:
        return True
    text = f" {normalize_name(subject.title)} "
    return any(f" {normalize_name(k)} " in text for k in keywords if normalize_name(k))
