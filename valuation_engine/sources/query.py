"""
Marketplace search query construction.

Marketplace search works best with a few distinctive words, so queries are
lower-cased, stripped of stop words and one-character tokens, and capped at
``MAX_QUERY_WORDS``. A linked catalog name is more precise than a free-form
title and is preferred when present.
"""

from __future__ import annotations

import re

from valuation_engine.models.subject import Subject

STOP_WORDS = frozenset({"the", "a", "an", "for", "with", "and", "or", "in", "on", "at"})
MAX_QUERY_WORDS = 6
MIN_QUERY_LENGTH = 3

_TOKEN = re.compile(r"[^\w\s'-]+")


def optimize_query(text: str) -> str:
    words = _TOKEN.sub(" ", text.lower()).split()
    kept = [w for w in words if len(w) > 1 and w not in STOP_WORDS]
    return " ".join(kept[:MAX_QUERY_WORDS])


def build_search_query(subject: Subject) -> str:
    if subject.catalog_name:
        base = subject.catalog_name
        if subject.catalog_secondary_name:
            base = f"{base} {subject.catalog_secondary_name}"
    else:
        base = subject.title
    return optimize_query(base) or subject.title.strip().lower()


def has_searchable_title(subject: Subject) -> bool:
    return len(subject.title.strip()) >= MIN_QUERY_LENGTH
