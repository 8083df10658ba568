"""
Subject (the item being valued) and catalog entry models.

A ``Subject`` is an owned collectible. Its current market value, the tag of
where that value came from, and the confidence behind it are rewritten every
time a valuation completes. ``original_value_cents`` captures the value held
before the first valuation or override and is never changed afterwards.

A ``CatalogEntry`` is a product in the external price catalog that subjects
can be linked to; linking is what makes the catalog-price source applicable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from valuation_engine.taxonomy.valuation_taxonomy import ItemCategory, ItemCondition, ValueSource


class CatalogEntry(BaseModel):
    """A catalog product that subjects can be linked to.

    Attributes:
        catalog_id: Auto-assigned database PK; ``None`` before insertion.
        provider_product_id: The catalog provider's own product id.
        display_name: Product name, e.g. ``"Super Mario 64"``.
        secondary_name: Platform / set / brand, e.g. ``"Nintendo 64"``.
    """

    model_config = ConfigDict(frozen=True)

    catalog_id: Optional[int] = None
    provider_product_id: str
    display_name: str
    secondary_name: Optional[str] = None

    @field_validator("provider_product_id", "display_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Catalog product id and display name must be non-empty.")
        return v.strip()


class Subject(BaseModel):
    """A physical collectible whose market value is tracked.

    ``catalog_product_id``, ``catalog_name`` and ``catalog_secondary_name``
    are read-only projections of the linked ``CatalogEntry``; they are filled
    in by ``SubjectRepository`` and ignored on insert.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: Optional[int] = None
    title: str
    category: ItemCategory = ItemCategory.OTHER
    condition: ItemCondition = ItemCondition.OTHER
    catalog_entry_id: Optional[int] = None
    catalog_product_id: Optional[str] = None
    catalog_name: Optional[str] = None
    catalog_secondary_name: Optional[str] = None
    current_value_cents: int = 0
    value_source: ValueSource = ValueSource.USER_DEFINED
    value_confidence: Optional[int] = None
    original_value_cents: Optional[int] = None
    value_updated_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Subject title must be non-empty.")
        return v.strip()

    @field_validator("current_value_cents")
    @classmethod
    def validate_value(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"current_value_cents must be >= 0, got {v}.")
        return v

    @field_validator("value_confidence")
    @classmethod
    def validate_confidence(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 0 <= v <= 100:
            raise ValueError(f"value_confidence must be in [0, 100], got {v}.")
        return v

    @property
    def subject_key(self) -> str:
        """Key under which this subject's cache entries are stored."""
        if self.subject_id is None:
            raise ValueError("Subject has no id; insert it before valuing it.")
        return str(self.subject_id)

    @property
    def is_linked(self) -> bool:
        return bool(self.catalog_product_id)
