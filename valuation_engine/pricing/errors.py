"""
Exceptions raised inside the valuation core.

``ValuationService`` converts these into failure result objects; they never
cross its public operations.
"""

from __future__ import annotations


class ValuationError(Exception):
    """Base class for valuation failures."""


class NoSourcesAvailableError(ValuationError):
    """No pricing source contributed an observation."""


class SubjectNotFoundError(ValuationError):
    """The requested subject does not exist."""

    def __init__(self, subject_id: int) -> None:
        super().__init__(f"Subject {subject_id} not found")
        self.subject_id = subject_id
