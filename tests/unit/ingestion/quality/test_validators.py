"""
Unit tests for the quality validators module.

Tests for validate_event recoverable / non-recoverable rules.
"""

from datetime import date, timedelta

import pytest

from src.ingestion.quality.validators import IssueKind, is_valid_url, validate_event
from src.schemas.event import Performer, RecurrencePattern


def messages(issues):
    return [i.message for i in issues]


class TestRequiredFields:
    """Non-recoverable rules."""

    def test_clean_event_has_no_issues(self, create_event, fixed_now):
        assert validate_event(create_event(), fixed_now) == []

    @pytest.mark.parametrize("title", [None, "", " ", "A"])
    def test_short_title(self, create_event, fixed_now, title):
        issues = validate_event(create_event(title=title), fixed_now)
        assert "Event title is required and must be at least 2 characters" in messages(issues)
        assert all(not i.recoverable for i in issues if i.field == "title")

    def test_missing_date(self, create_event, fixed_now):
        issues = validate_event(create_event(event_date=None, time=None), fixed_now)
        assert messages(issues) == ["Valid event date is required"]
        assert issues[0].kind == IssueKind.INVALID_DATE
        assert issues[0].recoverable is False

    def test_missing_venue_and_city(self, create_event, fixed_now):
        issues = validate_event(create_event(venue_name=None, city=""), fixed_now)
        assert messages(issues) == ["Venue name is required", "Venue city is required"]
        assert not any(i.recoverable for i in issues)


class TestRecoverableRules:
    """Recoverable rules never reject."""

    def test_date_in_the_past(self, create_event, fixed_now):
        event = create_event(event_date=fixed_now.date() - timedelta(days=3))
        issues = validate_event(event, fixed_now)
        assert messages(issues) == ["Event date is more than 1 day in the past"]
        assert issues[0].recoverable is True

    def test_yesterday_is_tolerated(self, create_event, fixed_now):
        event = create_event(event_date=fixed_now.date(), time=None)
        assert validate_event(event, fixed_now) == []

    def test_date_far_in_the_future(self, create_event, fixed_now):
        event = create_event(event_date=date(2027, 12, 1))
        assert messages(validate_event(event, fixed_now)) == [
            "Event date is more than 1 year in the future"
        ]

    def test_end_before_start(self, create_event, fixed_now):
        event = create_event(end_date=date(2026, 6, 14))
        assert messages(validate_event(event, fixed_now)) == [
            "End date cannot be before start date"
        ]

    def test_inverted_price_range(self, create_event, fixed_now):
        issues = validate_event(create_event(price_min=50, price_max=20), fixed_now)
        assert messages(issues) == ["Maximum price cannot be less than minimum price"]
        assert issues[0].recoverable is True

    def test_negative_and_excessive_prices(self, create_event, fixed_now):
        issues = validate_event(create_event(price_min=-5, price_max=20_000), fixed_now)
        assert messages(issues) == [
            "Minimum price cannot be negative",
            "Maximum price seems unreasonably high",
        ]

    def test_invalid_urls(self, create_event, fixed_now):
        event = create_event(
            url="not a url",
            ticket_url="https://",
            image_url="https://images.example.com/a.jpg",
        )
        assert messages(validate_event(event, fixed_now)) == [
            "Invalid event URL format",
            "Invalid ticket URL format",
        ]

    def test_performer_issues(self, create_event, fixed_now):
        event = create_event(
            performers=[
                Performer(name="DJ Test", website="https://dj.example.com"),
                Performer(name="", website="nope"),
            ]
        )
        assert messages(validate_event(event, fixed_now)) == [
            "Performer 2: Name is required",
            "Performer 2: Invalid website URL",
        ]

    def test_recurrence_issues(self, create_event, fixed_now):
        event = create_event(
            is_recurring=True,
            recurrence=RecurrencePattern(frequency="weekly", interval=0, days_of_week=[1, 7]),
        )
        issues = validate_event(event, fixed_now)
        assert len(issues) == 2
        assert all(i.kind == IssueKind.RECURRENCE and i.recoverable for i in issues)

    def test_recurrence_ignored_when_not_recurring(self, create_event, fixed_now):
        event = create_event(recurrence=RecurrencePattern(interval=0))
        assert validate_event(event, fixed_now) == []


class TestIsValidUrl:
    """Tests for is_valid_url."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://example.com/e/1", True),
            ("http://localhost:8000", True),
            ("mailto:info@example.com", True),
            ("example.com", False),
            ("https://", False),
            ("https://exa mple.com", False),
            ("", False),
        ],
    )
    def test_urls(self, value, expected):
        assert is_valid_url(value) is expected
