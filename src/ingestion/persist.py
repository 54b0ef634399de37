# Persistence layer for discovered events
"""
Persistence Layer for Event Discovery.

The pipeline depends only on the EventStore contract:

- ``upsert(event)`` keyed by ``(source_id, external_id)``; on update the
  stored id and slug are kept
- ``exists(slug, excluding_id)`` for slug pre-checks
- ``query(**filters)`` for lookups

A store must reject a second event with an already committed slug by raising
SlugConflictError; the SlugAllocator retries with another suffix.
"""

import datetime as dt
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2.extras import Json

from src.configs.settings import Settings
from src.ingestion.errors import SlugConflictError
from src.schemas.event import CanonicalEvent

logger = logging.getLogger(__name__)


@dataclass
class UpsertResult:
    """Stored version of the event and whether it was newly inserted."""

    event: CanonicalEvent
    created: bool


class EventStore(ABC):
    """Contract between the pipeline and the event database."""

    @abstractmethod
    def upsert(self, event: CanonicalEvent) -> UpsertResult:
        """
        Insert or update by (source_id, external_id).

        Raises:
            SlugConflictError: If the slug is taken by a different event
        """
        pass

    @abstractmethod
    def exists(self, slug: str, excluding_id: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    def query(self, **filters: Any) -> List[CanonicalEvent]:
        """
        Find events.

        Supported filters: any CanonicalEvent field for exact match, plus
        ``date_from``, ``date_to`` (inclusive) and ``limit``.
        """
        pass

    def close(self) -> None:
        pass


# ============================================================================
# IN-MEMORY STORE
# ============================================================================


class InMemoryEventStore(EventStore):
    """Thread-safe dict-backed store for tests and dry runs."""

    def __init__(self):
        self._events: Dict[str, CanonicalEvent] = {}
        self._by_key: Dict[Tuple[str, str], str] = {}
        self._by_slug: Dict[str, str] = {}
        self._lock = threading.Lock()

    def upsert(self, event: CanonicalEvent) -> UpsertResult:
        with self._lock:
            existing_id = self._by_key.get(event.conflict_key)
            if existing_id is not None:
                existing = self._events[existing_id]
                updated = event.model_copy(
                    update={
                        "id": existing.id,
                        "slug": existing.slug,
                        "created_at": existing.created_at,
                    }
                )
                self._events[existing_id] = updated
                return UpsertResult(event=updated, created=False)

            if event.slug in self._by_slug:
                raise SlugConflictError(event.slug)

            event_id = event.id or str(uuid.uuid4())
            stored = event.model_copy(update={"id": event_id})
            self._events[event_id] = stored
            self._by_key[event.conflict_key] = event_id
            self._by_slug[event.slug] = event_id
            return UpsertResult(event=stored, created=True)

    def exists(self, slug: str, excluding_id: Optional[str] = None) -> bool:
        with self._lock:
            owner = self._by_slug.get(slug)
        return owner is not None and owner != excluding_id

    def query(self, **filters: Any) -> List[CanonicalEvent]:
        date_from = filters.pop("date_from", None)
        date_to = filters.pop("date_to", None)
        limit = filters.pop("limit", None)

        with self._lock:
            events = list(self._events.values())

        results = []
        for event in events:
            if any(getattr(event, k, None) != v for k, v in filters.items()):
                continue
            if date_from and (event.date is None or event.date < date_from):
                continue
            if date_to and (event.date is None or event.date > date_to):
                continue
            results.append(event)
            if limit and len(results) >= limit:
                break
        return results

    def __len__(self) -> int:
        return len(self._events)


# ============================================================================
# POSTGRESQL STORE
# ============================================================================


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS discovered_events (
    id TEXT PRIMARY KEY,
    slug TEXT NOT NULL,
    source_id TEXT NOT NULL,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL,
    event_date DATE,
    city TEXT,
    category TEXT,
    quality_score INTEGER,
    payload JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT discovered_events_slug_key UNIQUE (slug),
    CONSTRAINT discovered_events_source_key UNIQUE (source_id, external_id)
);
CREATE INDEX IF NOT EXISTS idx_discovered_events_city_date
    ON discovered_events (city, event_date);
"""

UPSERT_SQL = """
INSERT INTO discovered_events (
    id, slug, source_id, external_id, title, event_date, city, category,
    quality_score, payload
)
VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (source_id, external_id) DO UPDATE SET
    title = EXCLUDED.title,
    event_date = EXCLUDED.event_date,
    city = EXCLUDED.city,
    category = EXCLUDED.category,
    quality_score = EXCLUDED.quality_score,
    payload = EXCLUDED.payload
        || jsonb_build_object(
            'id', discovered_events.id,
            'slug', discovered_events.slug,
            'created_at', discovered_events.payload -> 'created_at'
        ),
    updated_at = NOW()
RETURNING payload, (xmax = 0) AS inserted
"""

# Columns that can be filtered on directly; other fields go through payload
COLUMN_FILTERS = {
    "id",
    "slug",
    "source_id",
    "external_id",
    "title",
    "city",
    "category",
    "quality_score",
}
SLUG_CONSTRAINT = "discovered_events_slug_key"


class PostgresEventStore(EventStore):
    """
    psycopg2-backed store.

    Each upsert runs in its own transaction; a failed event is rolled back
    without affecting others. Calls are serialized because the TaskEngine
    runs blocking handlers in worker threads that share this connection.
    """

    def __init__(self, db_connection) -> None:
        """Initialize with an active psycopg2 connection."""
        self.conn = db_connection
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresEventStore":
        conn = psycopg2.connect(**settings.get_psycopg2_params())
        return cls(conn)

    def ensure_schema(self) -> None:
        with self._lock:
            with self.conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            self.conn.commit()

    def upsert(self, event: CanonicalEvent) -> UpsertResult:
        event_id = event.id or str(uuid.uuid4())
        payload = event.model_copy(update={"id": event_id}).model_dump(mode="json")

        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(
                        UPSERT_SQL,
                        (
                            event_id,
                            event.slug,
                            event.source_id,
                            event.external_id,
                            event.title,
                            event.date,
                            event.city,
                            event.category,
                            event.quality_score,
                            Json(payload),
                        ),
                    )
                    stored_payload, inserted = cur.fetchone()
                self.conn.commit()
            except pg_errors.UniqueViolation as e:
                self.conn.rollback()
                if e.diag.constraint_name == SLUG_CONSTRAINT:
                    raise SlugConflictError(event.slug) from e
                raise
            except Exception:
                self.conn.rollback()
                raise

        return UpsertResult(
            event=CanonicalEvent.model_validate(stored_payload),
            created=bool(inserted),
        )

    def exists(self, slug: str, excluding_id: Optional[str] = None) -> bool:
        sql = "SELECT 1 FROM discovered_events WHERE slug = %s"
        params: List[Any] = [slug]
        if excluding_id is not None:
            sql += " AND id <> %s"
            params.append(excluding_id)

        with self._lock:
            with self.conn.cursor() as cur:
                cur.execute(sql + " LIMIT 1", params)
                found = cur.fetchone() is not None
            self.conn.commit()
        return found

    def query(self, **filters: Any) -> List[CanonicalEvent]:
        clauses: List[str] = []
        params: List[Any] = []

        date_from: Optional[dt.date] = filters.pop("date_from", None)
        date_to: Optional[dt.date] = filters.pop("date_to", None)
        limit: Optional[int] = filters.pop("limit", None)

        for key, value in filters.items():
            if key in COLUMN_FILTERS:
                clauses.append(f"{key} = %s")
            else:
                if key not in CanonicalEvent.model_fields:
                    raise ValueError(f"Unknown filter: {key}")
                clauses.append(f"payload ->> '{key}' = %s")
                value = str(value)
            params.append(value)

        if date_from is not None:
            clauses.append("event_date >= %s")
            params.append(date_from)
        if date_to is not None:
            clauses.append("event_date <= %s")
            params.append(date_to)

        sql = "SELECT payload FROM discovered_events"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY event_date NULLS LAST, slug"
        if limit:
            sql += " LIMIT %s"
            params.append(int(limit))

        with self._lock:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            self.conn.commit()
        return [CanonicalEvent.model_validate(row[0]) for row in rows]

    def close(self) -> None:
        self.conn.close()


def create_event_store(settings: Settings) -> EventStore:
    """PostgreSQL when DATABASE_URL is configured, otherwise in-memory."""
    if settings.DATABASE_URL:
        store = PostgresEventStore.from_settings(settings)
        store.ensure_schema()
        logger.info("Using PostgreSQL event store")
        return store
    logger.warning("DATABASE_URL not set, using in-memory event store")
    return InMemoryEventStore()
