"""Tests for money and timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from valuation_engine.utils.money import (
    dollars_to_cents,
    format_cents,
    format_cents_range,
    round_half_up,
)
from valuation_engine.utils.time_utils import from_iso, parse_sale_date, to_iso


class TestMoney:
    @pytest.mark.parametrize(
        "value, expected",
        [(29.99, 2999), ("120.50", 12050), ("$1,234.56", 123456), (0.005, 1), (None, 0), ("n/a", 0), (True, 0)],
    )
    def test_dollars_to_cents(self, value, expected):
        assert dollars_to_cents(value) == expected

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4999) == 2
        assert round_half_up(80.8) == 81

    def test_format(self):
        assert format_cents(3000) == "$30.00"
        assert format_cents(123456789) == "$1,234,567.89"
        assert format_cents_range(3000, 4000) == "$30.00 – $40.00"


class TestTimestamps:
    def test_iso_round_trip_keeps_utc(self):
        value = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        text = to_iso(value)
        assert text == "2026-03-01T12:00:00.000000+00:00"
        assert from_iso(text) == value

    def test_stored_form_sorts_chronologically(self):
        base = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        later = base + timedelta(microseconds=1)
        assert to_iso(base) < to_iso(later)

    def test_other_offsets_normalized(self):
        value = datetime(2026, 3, 1, 7, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert to_iso(value) == "2026-03-01T12:00:00.000000+00:00"

    @pytest.mark.parametrize(
        "text",
        ["2026-01-15T10:00:00Z", "2026-01-15", "01/15/2026", "Jan 15, 2026", "15 Jan 2026"],
    )
    def test_parse_sale_date_formats(self, text):
        assert parse_sale_date(text).date() == datetime(2026, 1, 15).date()

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_parse_sale_date_unparsable(self, value):
        assert parse_sale_date(value) is None
