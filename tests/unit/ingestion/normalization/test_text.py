"""
Unit tests for the normalization text module.

Tests for slugs, description truncation, date and price parsing.
"""

import datetime as dt
from decimal import Decimal

import pytest

from src.ingestion.normalization.text import (
    create_slug,
    parse_event_datetime,
    parse_price,
    truncate_description,
)


class TestCreateSlug:
    """Tests for create_slug."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Live Jazz Night", "live-jazz-night"),
            ("  Live Jazz Night @ Blue Note! ", "live-jazz-night-blue-note"),
            ("Rock -- Roll", "rock-roll"),
            ("Café Tour 2026", "caf-tour-2026"),
        ],
    )
    def test_slugify(self, title, expected):
        assert create_slug(title) == expected

    def test_caps_length(self):
        slug = create_slug("word " * 50)
        assert len(slug) <= 100
        assert not slug.endswith("-")

    @pytest.mark.parametrize("title", [None, "", "   ", "!!!"])
    def test_fallback_for_unusable_titles(self, title):
        assert create_slug(title).startswith("event-")


class TestTruncateDescription:
    """Tests for truncate_description."""

    def test_short_description_kept(self):
        assert truncate_description("  A fine evening.  ") == "A fine evening."

    def test_exactly_at_limit_kept(self):
        text = "x" * 1000
        assert truncate_description(text) == text

    def test_long_description_truncated(self):
        result = truncate_description("y" * 1001)
        assert len(result) == 500
        assert result.endswith("...")

    def test_empty_becomes_none(self):
        assert truncate_description("   ") is None
        assert truncate_description(None) is None


class TestParseEventDatetime:
    """Tests for parse_event_datetime."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-11-20T20:00:00Z", (dt.date(2026, 11, 20), dt.time(20, 0))),
            ("2026-11-20T20:00:00-05:00", (dt.date(2026, 11, 21), dt.time(1, 0))),
            ("2026-11-20", (dt.date(2026, 11, 20), None)),
            ("2026-11-20 19:30", (dt.date(2026, 11, 20), dt.time(19, 30))),
            ("11/20/2026", (dt.date(2026, 11, 20), None)),
            (dt.date(2026, 11, 20), (dt.date(2026, 11, 20), None)),
            (
                dt.datetime(2026, 11, 20, 8, 15),
                (dt.date(2026, 11, 20), dt.time(8, 15)),
            ),
            (1_795_000_000, (dt.date(2026, 11, 18), dt.time(11, 6, 40))),
            (1_795_000_000_000, (dt.date(2026, 11, 18), dt.time(11, 6, 40))),
        ],
    )
    def test_accepted_formats(self, value, expected):
        assert parse_event_datetime(value) == expected

    @pytest.mark.parametrize("value", [None, "", "next friday", "2026-13-45", [2026]])
    def test_unparseable(self, value):
        assert parse_event_datetime(value) is None


class TestParsePrice:
    """Tests for parse_price."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (20, Decimal("20")),
            (19.5, Decimal("19.5")),
            ("$25", Decimal("25")),
            ("15,50 EUR", Decimal("15.50")),
            ("Free", Decimal("0")),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_price(value) == expected

    @pytest.mark.parametrize("value", [None, "", "TBA", True])
    def test_unparseable(self, value):
        assert parse_price(value) is None
