"""
Slug uniqueness.

The SlugAllocator checks candidate slugs against the store and against the
slugs it has already handed out in this process, appending -1, -2, ... until
one is free. Two concurrent allocations can still race past the store check,
so persistence goes through ``persist()``, which catches the store's
SlugConflictError and retries with the next free suffix.
"""

import logging
import threading
from typing import TYPE_CHECKING, Optional, Set

from src.ingestion.errors import SlugConflictError
from src.ingestion.normalization.text import SLUG_MAX_LENGTH, create_slug, fallback_slug
from src.schemas.event import CanonicalEvent

if TYPE_CHECKING:
    from src.ingestion.persist import EventStore, UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 100


class SlugAllocator:
    """Issues unique slugs and persists events with slug-conflict retry."""

    def __init__(
        self,
        store: Optional["EventStore"] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_length: int = SLUG_MAX_LENGTH,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.max_length = max_length
        self._issued: Set[str] = set()
        self._lock = threading.Lock()

    def allocate(self, title: Optional[str], exclude_id: Optional[str] = None) -> str:
        """Reserve and return a unique slug for the title."""
        base = create_slug(title, self.max_length)
        with self._lock:
            slug = self._next_free(base, exclude_id)
            self._issued.add(slug)
        return slug

    def release(self, slug: str) -> None:
        """Give back a reserved slug that was never committed."""
        with self._lock:
            self._issued.discard(slug)

    def is_taken(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        if slug in self._issued:
            return True
        if self.store is None:
            return False
        return self.store.exists(slug, excluding_id=exclude_id)

    def persist(self, event: CanonicalEvent) -> "UpsertResult":
        """
        Upsert the event, re-slugging on store-side unique violations.

        Raises:
            SlugConflictError: If no free slug is found within max_attempts
        """
        if self.store is None:
            raise RuntimeError("SlugAllocator.persist() requires a store")

        candidate = event
        tried = []
        for _ in range(self.max_attempts + 1):
            tried.append(candidate.slug)
            try:
                result = self.store.upsert(candidate)
            except SlugConflictError as e:
                logger.info(f"Slug '{e.slug}' taken at commit time, picking another")
                with self._lock:
                    self._issued.add(candidate.slug)
                    slug = self._next_free(
                        create_slug(event.title, self.max_length), event.id
                    )
                    self._issued.add(slug)
                candidate = candidate.model_copy(update={"slug": slug})
                continue

            # Committed slugs belong to the store from here on; an update may
            # also have kept the stored slug instead of the one allocated here.
            with self._lock:
                self._issued.difference_update(tried)
            return result

        raise SlugConflictError(candidate.slug)

    def _next_free(self, base: str, exclude_id: Optional[str]) -> str:
        if not self.is_taken(base, exclude_id):
            return base

        for counter in range(1, self.max_attempts + 1):
            suffix = f"-{counter}"
            slug = base[: self.max_length - len(suffix)] + suffix
            if not self.is_taken(slug, exclude_id):
                return slug

        slug = f"{base}-{fallback_slug().split('-', 1)[1]}"
        logger.warning(f"Slug suffixes exhausted for '{base}', using {slug}")
        return slug
