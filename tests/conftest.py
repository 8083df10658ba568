"""
Shared pytest fixtures for the collectible valuation test suite.

Provides:
  - ``in_memory_db``: a fresh in-memory SQLite connection with the schema and
    migrations applied.
  - ``now``: a fixed UTC instant so TTL arithmetic is deterministic.
  - Repository and cache fixtures over ``in_memory_db``.
  - Sample subjects and an observation factory.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest

from valuation_engine.db.migrations import run_migrations
from valuation_engine.db.repositories.catalog_repo import CatalogRepository
from valuation_engine.db.repositories.subject_repo import SubjectRepository
from valuation_engine.db.repositories.valuation_cache_repo import SQLiteValuationCache
from valuation_engine.db.schema import apply_schema
from valuation_engine.models.subject import Subject
from valuation_engine.models.valuation import SourceObservation
from valuation_engine.taxonomy.valuation_taxonomy import (
    ItemCategory,
    ItemCondition,
    Provider,
)


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with schema and migrations applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def subject_repo(in_memory_db) -> SubjectRepository:
    return SubjectRepository(in_memory_db)


@pytest.fixture
def catalog_repo(in_memory_db) -> CatalogRepository:
    return CatalogRepository(in_memory_db)


@pytest.fixture
def sqlite_cache(in_memory_db) -> SQLiteValuationCache:
    return SQLiteValuationCache(in_memory_db)


# ── Sample domain objects ─────────────────────────────────────────────────────

@pytest.fixture
def sample_subject() -> Subject:
    """An unsaved, unlinked loose video game."""
    return Subject(
        title="Super Mario 64",
        category=ItemCategory.VIDEO_GAMES,
        condition=ItemCondition.LOOSE,
        current_value_cents=2500,
    )


@pytest.fixture
def saved_subject(subject_repo, sample_subject) -> Subject:
    """``sample_subject`` persisted and re-read (has a ``subject_id``)."""
    subject_id = subject_repo.insert(sample_subject)
    return subject_repo.get_by_id(subject_id)


@pytest.fixture
def linked_subject(subject_repo, catalog_repo, saved_subject) -> Subject:
    """``saved_subject`` linked to catalog product ``6910``."""
    entry_id, _ = catalog_repo.upsert_by_provider_id("6910", "Super Mario 64", "Nintendo 64")
    subject_repo.link_catalog_entry(saved_subject.subject_id, entry_id)
    return subject_repo.get_by_id(saved_subject.subject_id)


@pytest.fixture
def make_observation(now) -> Callable[..., SourceObservation]:
    """Factory for ``SourceObservation`` with sensible defaults."""

    def _make(
        provider: Provider = Provider.PRICECHARTING,
        price_cents: int = 3000,
        weight: float = 0.4,
        confidence: int = 85,
        sample_size: int = 1,
        **kwargs,
    ) -> SourceObservation:
        return SourceObservation(
            provider=provider,
            price_cents=price_cents,
            weight=weight,
            confidence=confidence,
            sample_size=sample_size,
            observed_at=kwargs.pop("observed_at", now),
            **kwargs,
        )

    return _make
