"""
Unit tests for the slugs module.

Tests for SlugAllocator uniqueness and slug-conflict retry on persist.
"""

from unittest.mock import MagicMock

import pytest

from src.ingestion.errors import SlugConflictError
from src.ingestion.normalization.slugs import SlugAllocator
from src.ingestion.persist import InMemoryEventStore, UpsertResult


class TestAllocate:
    """Tests for SlugAllocator.allocate."""

    def test_repeated_titles_get_suffixes(self):
        allocator = SlugAllocator()
        slugs = [allocator.allocate("Jazz Night") for _ in range(3)]
        assert slugs == ["jazz-night", "jazz-night-1", "jazz-night-2"]

    def test_checks_store(self, store, create_event):
        store.upsert(create_event(title="Jazz Night", slug="jazz-night"))
        allocator = SlugAllocator(store)
        assert allocator.allocate("Jazz Night") == "jazz-night-1"

    def test_exclude_id_allows_own_slug(self, store, create_event):
        stored = store.upsert(create_event(title="Jazz Night", slug="jazz-night")).event
        allocator = SlugAllocator(store)
        assert allocator.allocate("Jazz Night", exclude_id=stored.id) == "jazz-night"

    def test_release_frees_slug(self):
        allocator = SlugAllocator()
        slug = allocator.allocate("Jazz Night")
        allocator.release(slug)
        assert allocator.allocate("Jazz Night") == "jazz-night"

    def test_suffix_respects_max_length(self):
        allocator = SlugAllocator(max_length=10)
        allocator.allocate("abcdefghij")
        assert allocator.allocate("abcdefghij") == "abcdefgh-1"

    def test_exhausted_suffixes_fall_back_to_timestamp(self):
        allocator = SlugAllocator(max_attempts=2)
        for _ in range(3):
            allocator.allocate("Show")
        slug = allocator.allocate("Show")
        assert slug.startswith("show-")
        assert slug not in ("show", "show-1", "show-2")

    def test_many_allocations_unique(self):
        allocator = SlugAllocator()
        slugs = {allocator.allocate("Same Title") for _ in range(50)}
        assert len(slugs) == 50


class TestPersist:
    """Tests for SlugAllocator.persist."""

    def test_requires_store(self, create_event):
        with pytest.raises(RuntimeError):
            SlugAllocator().persist(create_event())

    def test_retries_after_commit_time_conflict(self, store, create_event):
        # Another writer committed the slug after this allocator checked it.
        store.upsert(create_event(title="Jazz Night", slug="jazz-night"))
        allocator = SlugAllocator(store)
        event = create_event(title="Jazz Night", slug="jazz-night")

        result = allocator.persist(event)
        assert result.created is True
        assert result.event.slug == "jazz-night-1"

    def test_conflict_raised_when_no_slug_can_be_committed(self, create_event):
        store = MagicMock()
        store.exists.return_value = False
        store.upsert.side_effect = SlugConflictError("jazz-night")
        allocator = SlugAllocator(store, max_attempts=2)

        with pytest.raises(SlugConflictError):
            allocator.persist(create_event(title="Jazz Night", slug="jazz-night"))
        assert store.upsert.call_count == 3

    def test_passes_through_upsert_result(self, create_event):
        event = create_event()
        store = InMemoryEventStore()
        result = SlugAllocator(store).persist(event)
        assert isinstance(result, UpsertResult)
        assert store.query(slug=event.slug)[0].id == result.event.id

    def test_committed_slug_handed_to_store(self, store, create_event):
        allocator = SlugAllocator(store)
        slug = allocator.allocate("Jazz Night")
        allocator.persist(create_event(title="Jazz Night", slug=slug))

        assert slug not in allocator._issued
        # still taken, now through the store
        assert allocator.allocate("Jazz Night") == "jazz-night-1"

    def test_update_keeping_stored_slug_releases_allocated_one(self, store, create_event):
        allocator = SlugAllocator(store)
        first = create_event(title="Jazz Night", slug=allocator.allocate("Jazz Night"))
        allocator.persist(first)

        # same source record seen again before the first write was visible
        duplicate = create_event(
            title="Jazz Night",
            slug=allocator.allocate("Jazz Night"),
            external_id=first.external_id,
        )
        assert duplicate.slug == "jazz-night-1"

        result = allocator.persist(duplicate)

        assert result.created is False
        assert result.event.slug == "jazz-night"
        assert allocator.is_taken("jazz-night-1") is False

    def test_slugs_tried_during_conflicts_released_after_commit(self, store, create_event):
        store.upsert(create_event(title="Jazz Night", slug="jazz-night"))
        allocator = SlugAllocator(store)

        result = allocator.persist(create_event(title="Jazz Night", slug="jazz-night"))

        assert result.event.slug == "jazz-night-1"
        assert allocator._issued == set()
