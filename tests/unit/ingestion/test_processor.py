"""
Unit tests for the processor module.

Tests for EventProcessor batching, gating and persistence.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from src.ingestion.errors import SlugConflictError
from src.ingestion.processor import (
    EventProcessor,
    ProcessingStatus,
    ProcessorConfig,
)
from src.ingestion.task_engine import TaskEngine, TaskEngineConfig

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def engine():
    return TaskEngine(TaskEngineConfig(max_workers=4, retry_attempts=2, retry_delay_ms=0))


@pytest.fixture
def pauses():
    return []


@pytest.fixture
def processor(engine, store, pauses):
    async def fake_sleep(seconds):
        pauses.append(seconds)

    return EventProcessor(
        engine,
        store,
        config=ProcessorConfig(batch_size=2, batch_pause_seconds=1.0),
        sleep=fake_sleep,
    )


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestProcess:
    """Tests for EventProcessor.process."""

    def test_all_records_persisted(self, processor, store, create_raw_record):
        records = [create_raw_record(title=f"Jazz Concert {i}") for i in range(3)]
        result = asyncio.run(processor.process(records, "eventbrite"))

        assert result.status == ProcessingStatus.SUCCESS
        assert result.stats.total == 3
        assert result.stats.persisted == 3
        assert result.stats.inserted == 3
        assert result.stats.categorized == 3
        assert len(store) == 3
        assert all(e.quality_score is not None for e in result.events)
        assert result.success_rate == 100.0
        assert result.failure_summary() is None

    def test_pauses_between_batches_only(self, processor, pauses, create_raw_record):
        records = [create_raw_record() for _ in range(5)]
        asyncio.run(processor.process(records, "eventbrite"))
        # 3 batches of at most 2 records, no pause after the last one
        assert pauses == [1.0, 1.0]

    def test_invalid_records_rejected_without_aborting(
        self, processor, store, create_raw_record
    ):
        records = [
            create_raw_record(title="Good Show"),
            create_raw_record(title=""),
            create_raw_record(start="someday"),
            create_raw_record(title="No Venue", venue_name=None, city=None),
        ]
        result = asyncio.run(processor.process(records, "yelp"))

        assert result.status == ProcessingStatus.PARTIAL_SUCCESS
        assert result.stats.rejected == 3
        assert result.stats.persisted == 1
        assert [e["stage"] for e in result.errors] == ["normalize", "normalize", "quality"]
        assert result.failure_summary().failed == 3
        assert len(store) == 1

    def test_rejected_event_releases_slug(self, processor, create_raw_record):
        bad = create_raw_record(title="Jazz Night", venue_name=None, city=None)
        good = create_raw_record(title="Jazz Night")
        result = asyncio.run(processor.process([bad, good], "eventbrite"))
        assert result.events[0].slug == "jazz-night"

    def test_reingestion_updates(self, processor, store, create_raw_record):
        records = [create_raw_record(title="Jazz Night")]
        asyncio.run(processor.process(records, "eventbrite"))
        result = asyncio.run(processor.process(records, "eventbrite"))

        assert result.stats.updated == 1
        assert result.stats.inserted == 0
        assert len(store) == 1

    def test_empty_input(self, processor):
        result = asyncio.run(processor.process([], "eventbrite"))
        assert result.status == ProcessingStatus.SUCCESS
        assert result.stats.total == 0

    def test_store_failures_reported(self, engine, create_raw_record):
        store = MagicMock()
        store.query.return_value = []
        store.exists.return_value = False
        store.upsert.side_effect = RuntimeError("disk full")
        processor = EventProcessor(
            engine, store, config=ProcessorConfig(batch_pause_seconds=0)
        )

        result = asyncio.run(processor.process([create_raw_record()], "eventbrite"))

        assert result.status == ProcessingStatus.FAILED
        assert result.stats.errors == 1
        assert result.errors[0]["stage"] == "persist"
        assert "disk full" in result.errors[0]["message"]

    def test_concurrent_slug_conflict_resolved(self, engine, create_raw_record):
        store = MagicMock()
        store.query.return_value = []
        store.exists.return_value = False
        calls = []

        def upsert(event):
            calls.append(event.slug)
            if len(calls) == 1:
                raise SlugConflictError(event.slug)
            return MagicMock(event=event, created=True)

        store.upsert.side_effect = upsert
        processor = EventProcessor(engine, store, config=ProcessorConfig(batch_pause_seconds=0))

        result = asyncio.run(processor.process([create_raw_record(title="Jazz Night")], "x"))

        assert result.stats.persisted == 1
        assert calls == ["jazz-night", "jazz-night-1"]
        assert result.errors == []
