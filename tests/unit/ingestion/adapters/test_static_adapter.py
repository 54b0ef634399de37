"""
Unit tests for the static_adapter module.
"""

import asyncio

from src.ingestion.adapters import FetchParams, SourceType, StaticAdapter, StaticAdapterConfig
from src.schemas.run import Location

RECORDS = [
    {"external_id": "1", "title": "NYC Show", "start": "2026-11-20", "city": "New York"},
    {
        "external_id": "2",
        "title": "Venue Show",
        "start": "2026-11-21",
        "venue": {"name": "Hall", "city": "new york "},
    },
    {"external_id": "3", "title": "Chicago Show", "start": "2026-11-22", "city": "Chicago"},
    {"external_id": "4", "title": "Anywhere Show", "start": "2026-11-23"},
    {"external_id": "5", "title": "Broken", "performers": "not-a-list"},
]


def make_adapter(records=RECORDS):
    return StaticAdapter(StaticAdapterConfig(source_id="seed", records=records))


class TestStaticAdapter:
    """Tests for StaticAdapter.fetch."""

    def test_source_type(self):
        assert make_adapter().source_type == SourceType.STATIC

    def test_filters_by_location(self):
        records = asyncio.run(make_adapter().fetch(Location(name="New York")))
        assert [r.external_id for r in records] == ["1", "2", "4"]

    def test_records_without_city_match_everywhere(self):
        records = asyncio.run(make_adapter().fetch(Location(name="Austin")))
        assert [r.external_id for r in records] == ["4"]

    def test_respects_max_events(self):
        records = asyncio.run(
            make_adapter().fetch(Location(name="New York"), FetchParams(max_events=2))
        )
        assert len(records) == 2

    def test_malformed_records_skipped(self):
        records = asyncio.run(make_adapter().fetch(Location(name="Chicago")))
        assert [r.external_id for r in records] == ["3", "4"]
