"""
Money helpers.

Every price inside the engine is an integer number of US cents. Providers
that quote dollars are converted once, at the adapter boundary.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 going up."""
    return int(math.floor(value + 0.5))


def dollars_to_cents(value: Any) -> int:
    """Convert a provider dollar amount (number or numeric string) to cents.

    Returns 0 for missing or unparsable amounts; callers treat 0 as "no price".
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        amount = Decimal(str(value).replace("$", "").replace(",", "").strip())
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    """Format cents as a dollar string, e.g. ``3000 -> "$30.00"``."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole:,}.{frac:02d}"


def format_cents_range(low_cents: int, high_cents: int) -> str:
    """Format a price range, e.g. ``"$30.00 – $40.00"``."""
    return f"{format_cents(low_cents)} – {format_cents(high_cents)}"
