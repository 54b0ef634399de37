"""
Event Normalizer.

Turns a RawEventRecord delivered by a source adapter into a CanonicalEvent:

- trims the title and truncates long descriptions
- assigns a unique slug (reusing the stored slug on re-ingestion)
- resolves coordinates through the geocoding chain
- assigns category tags
- attaches processing metadata

Only a missing title or an unparseable start date is fatal for a record; both
raise ValidationError. Everything else is left for the Quality Gate to judge.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.ingestion.errors import ValidationError
from src.ingestion.normalization.categorization import BaseCategorizer, KeywordCategorizer
from src.ingestion.normalization.geocoding import GeocodeResult, Geocoder
from src.ingestion.normalization.slugs import SlugAllocator
from src.ingestion.normalization.text import (
    DESCRIPTION_LIMIT,
    TRUNCATED_DESCRIPTION_LENGTH,
    parse_event_datetime,
    parse_price,
    truncate_description,
)
from src.schemas.event import CanonicalEvent, RawEventRecord

if TYPE_CHECKING:
    from src.ingestion.persist import EventStore

NORMALIZATION_VERSION = "1.0"


@dataclass
class NormalizerConfig:
    """Tunable limits of the Normalizer."""

    description_limit: int = DESCRIPTION_LIMIT
    truncated_description_length: int = TRUNCATED_DESCRIPTION_LENGTH


class EventNormalizer:
    """
    Normalize provider records into canonical events.

    Geocoder and categorizer are injected strategies; the defaults need no
    network access.
    """

    def __init__(
        self,
        store: Optional["EventStore"] = None,
        slug_allocator: Optional[SlugAllocator] = None,
        geocoder: Optional[Geocoder] = None,
        categorizer: Optional[BaseCategorizer] = None,
        config: Optional[NormalizerConfig] = None,
    ):
        self.store = store
        self.slug_allocator = slug_allocator or SlugAllocator(store)
        self.geocoder = geocoder or Geocoder()
        self.categorizer = categorizer or KeywordCategorizer()
        self.config = config or NormalizerConfig()
        self.logger = logging.getLogger("normalizer")

    def normalize(self, record: RawEventRecord, source_id: str) -> CanonicalEvent:
        """
        Normalize one record.

        Args:
            record: Adapter output
            source_id: Source the record came from

        Returns:
            CanonicalEvent with slug, category, tags and metadata set

        Raises:
            ValidationError: If the title is missing or the date is unparseable
        """
        title = (record.title or "").strip()
        if not title:
            raise ValidationError("Event title is required", field="title")

        start = parse_event_datetime(record.start)
        if start is None:
            raise ValidationError(
                f"Unparseable event date: {record.start!r}",
                field="start",
                value=record.start,
            )
        start_date, start_time = start
        end = parse_event_datetime(record.end) if record.end else None

        external_id = record.external_id or self._fingerprint(source_id, title, record.start)
        existing = self._find_existing(source_id, external_id)
        if existing is not None and existing.slug:
            slug = existing.slug
        else:
            slug = self.slug_allocator.allocate(title)

        geo = self.geocoder.geocode(record)
        tags = self.categorizer.categorize(f"{title} {record.description or ''}")
        venue = record.venue

        event = CanonicalEvent(
            id=existing.id if existing is not None else None,
            slug=slug,
            source_id=source_id,
            external_id=external_id,
            title=title,
            description=truncate_description(
                record.description,
                self.config.description_limit,
                self.config.truncated_description_length,
            ),
            date=start_date,
            time=start_time,
            end_date=end[0] if end else None,
            end_time=end[1] if end else None,
            is_recurring=record.is_recurring,
            recurrence=record.recurrence,
            venue_id=venue.id if venue else None,
            venue_name=(venue.name or "").strip() or None if venue else None,
            address=record.address or (venue.address if venue else None),
            city=record.city or (venue.city if venue else None),
            latitude=geo.latitude if geo else None,
            longitude=geo.longitude if geo else None,
            category=tags[0],
            tags=tags,
            price_min=parse_price(record.price_min),
            price_max=parse_price(record.price_max),
            currency=record.currency or "USD",
            url=record.url,
            ticket_url=record.ticket_url,
            image_url=record.image_url,
            performers=record.performers,
            metadata=self._build_metadata(record, geo, end is not None),
        )
        self.logger.debug(f"Normalized '{title}' from {source_id} as {slug}")
        return event

    def _find_existing(self, source_id: str, external_id: str) -> Optional[CanonicalEvent]:
        if self.store is None:
            return None
        matches = self.store.query(source_id=source_id, external_id=external_id)
        return matches[0] if matches else None

    @staticmethod
    def _fingerprint(source_id: str, title: str, start: Any) -> str:
        """Stable external id for providers that do not send one."""
        raw = f"{source_id}|{title.lower()}|{start}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def _build_metadata(
        record: RawEventRecord,
        geo: Optional[GeocodeResult],
        has_end: bool,
    ) -> Dict[str, Any]:
        venue_name = record.venue.name if record.venue else None
        metadata: Dict[str, Any] = {
            "venue_info": {"name": venue_name, "has_coordinates": geo is not None},
            "has_coordinates": geo is not None,
            "duration_estimated": not has_end,
            "processed_at": datetime.now(timezone.utc).isoformat(),
            "processing_version": NORMALIZATION_VERSION,
            "geocoded_by": geo.strategy if geo else None,
        }
        if record.tags:
            metadata["source_tags"] = list(record.tags)
        if record.model_extra:
            metadata["source_fields"] = dict(record.model_extra)
        return metadata
