"""
Shared pytest fixtures for the event discovery test suite.

Provides factory fixtures for CanonicalEvent and RawEventRecord objects and
a fresh in-memory store.
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest

from src.ingestion.persist import InMemoryEventStore
from src.schemas.event import CanonicalEvent, RawEventRecord, VenueInfo

# Reference "now" for date-window rules
FIXED_NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def create_event():
    """
    Return a function that creates CanonicalEvent objects with sensible defaults.

    The defaults pass every non-recoverable rule relative to FIXED_NOW.
    All defaults can be overridden via keyword arguments.

    Example:
        event = create_event(title="My Event", venue_name="Club XYZ")
    """

    def _create_event(
        title: Optional[str] = "Test Event",
        venue_name: Optional[str] = "Test Venue",
        event_date: Optional[date] = date(2026, 6, 15),
        **kwargs,
    ) -> CanonicalEvent:
        defaults = {
            "slug": kwargs.pop("slug", f"test-event-{uuid.uuid4().hex[:8]}"),
            "source_id": "test",
            "external_id": str(uuid.uuid4()),
            "title": title,
            "date": event_date,
            "time": time(20, 0),
            "venue_name": venue_name,
            "city": "New York",
        }

        # Merge defaults with provided kwargs
        defaults.update(kwargs)

        return CanonicalEvent(**defaults)

    return _create_event


@pytest.fixture
def create_raw_record():
    """
    Return a function that creates RawEventRecord objects as adapters emit them.

    The default start lies 30 days ahead of today so the record passes the
    real-clock date rules.
    """

    def _create_raw_record(
        title: Optional[str] = "Test Event",
        start=None,
        venue_name: Optional[str] = "Test Venue",
        city: Optional[str] = "New York",
        **kwargs,
    ) -> RawEventRecord:
        if start is None:
            start = (datetime.now(timezone.utc) + timedelta(days=30)).replace(
                microsecond=0
            ).isoformat()

        defaults = {
            "external_id": str(uuid.uuid4()),
            "title": title,
            "start": start,
            "venue": VenueInfo(name=venue_name, city=city) if venue_name else None,
            "city": city,
        }
        defaults.update(kwargs)
        return RawEventRecord(**defaults)

    return _create_raw_record


@pytest.fixture
def full_event(create_event):
    """An event with every scored field present."""
    return create_event(
        title="Live Jazz Night",
        description="An evening of live jazz with local musicians.",
        price_min=20,
        price_max=45,
        ticket_url="https://tickets.example.com/jazz",
        image_url="https://images.example.com/jazz.jpg",
        performers=[{"name": "The Trio", "website": "https://trio.example.com"}],
        tags=["music"],
        address="131 W 3rd St, New York",
    )


@pytest.fixture
def store():
    """Fresh in-memory event store."""
    return InMemoryEventStore()
