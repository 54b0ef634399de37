# src/schemas/event.py
"""
Canonical Event Schema for the event discovery pipeline.

Providers (Eventbrite, Ticketmaster, Yelp, Meetup, ...) deliver heterogeneous
payloads. Source adapters translate each payload into a RawEventRecord, the
Normalizer turns that into a CanonicalEvent, and the CanonicalEvent is the only
record type the Quality Gate and the persistence layer understand.
"""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


def _utc_now() -> dt.datetime:
    """Return current UTC time as timezone-aware datetime."""
    return dt.datetime.now(dt.timezone.utc)


def _coerce_optional_str(v: Any) -> Optional[str]:
    if v is None or v == "":
        return None
    return str(v)


# ============================================================================
# LOCATION & GEOGRAPHIC DATA
# ============================================================================


class Coordinates(BaseModel):
    """
    Geographic coordinates.
    """

    latitude: float
    longitude: float

    @field_validator("latitude")
    def validate_latitude(cls, v):
        if not -90 <= v <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        return v

    @field_validator("longitude")
    def validate_longitude(cls, v):
        if not -180 <= v <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        return v


class VenueInfo(BaseModel):
    """
    Venue as delivered by a provider; coordinates are optional.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return _coerce_optional_str(v)

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


# ============================================================================
# PERFORMERS & RECURRENCE
# ============================================================================


class Performer(BaseModel):
    """
    A performer sub-record. Name and website are checked by the Quality Gate,
    not here, so malformed entries survive normalization as warnings.
    """

    name: Optional[str] = None
    website: Optional[str] = None
    role: Optional[str] = None


class RecurrencePattern(BaseModel):
    """
    Recurrence of a repeating event.

    days_of_week uses 0=Sunday .. 6=Saturday.
    """

    frequency: Optional[str] = None  # e.g. 'daily', 'weekly', 'monthly'
    interval: int = 1
    days_of_week: List[int] = Field(default_factory=list)


# ============================================================================
# RAW PROVIDER RECORD (Normalizer input)
# ============================================================================


class RawEventRecord(BaseModel):
    """
    A provider payload translated into the Normalizer's input shape.

    Values are kept loose (strings, numbers, datetimes) because providers
    disagree on types; the Normalizer does the parsing. Unknown provider fields
    are preserved as extras.
    """

    model_config = ConfigDict(extra="allow")

    external_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None

    start: Any = None
    end: Any = None

    venue: Optional[VenueInfo] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    price_min: Any = None
    price_max: Any = None
    currency: str = "USD"

    url: Optional[str] = None
    ticket_url: Optional[str] = None
    image_url: Optional[str] = None

    performers: List[Performer] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    is_recurring: bool = False
    recurrence: Optional[RecurrencePattern] = None

    @field_validator("external_id", mode="before")
    @classmethod
    def coerce_external_id(cls, v):
        return _coerce_optional_str(v)


# ============================================================================
# CANONICAL EVENT
# ============================================================================


class CanonicalEvent(BaseModel):
    """
    Canonical Event record.

    Invariants enforced by the persistence layer:
    - ``slug`` is unique among committed events
    - ``(source_id, external_id)`` is unique (idempotency key for upsert)

    Instances are frozen; the Normalizer and the Quality Gate produce updated
    copies with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "title": "Live Jazz Night",
                "date": "2026-11-20",
                "time": "20:00:00",
                "venue_name": "Blue Note",
                "city": "New York",
                "category": "music",
                "tags": ["music"],
                "price_min": 20.0,
                "price_max": 45.0,
                "slug": "live-jazz-night",
                "source_id": "eventbrite",
                "external_id": "eb-12345",
            }
        },
    )

    # ---- IDENTITY ----
    id: Optional[str] = None
    slug: str = ""
    source_id: str
    external_id: str

    # ---- CORE ----
    title: Optional[str] = None
    description: Optional[str] = None

    # ---- TIMING ----
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    end_date: Optional[dt.date] = None
    end_time: Optional[dt.time] = None
    is_recurring: bool = False
    recurrence: Optional[RecurrencePattern] = None

    # ---- LOCATION ----
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # ---- CATEGORIZATION ----
    category: str = "other"
    tags: List[str] = Field(default_factory=list)

    # ---- PRICING & LINKS ----
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None
    currency: str = "USD"
    url: Optional[str] = None
    ticket_url: Optional[str] = None
    image_url: Optional[str] = None

    # ---- PEOPLE ----
    performers: List[Performer] = Field(default_factory=list)

    # ---- QUALITY ----
    quality_score: Optional[int] = Field(default=None, ge=0, le=100)
    warnings: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: dt.datetime = Field(default_factory=_utc_now)

    @field_validator("price_min", "price_max", mode="before")
    @classmethod
    def coerce_to_decimal(cls, v):
        """Coerce float/int to Decimal for price fields."""
        if v is None:
            return None
        if isinstance(v, Decimal):
            return v
        return Decimal(str(v))

    @field_validator("venue_id", "external_id", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        if v is None:
            return None
        return str(v)

    @field_serializer("price_min", "price_max")
    def serialize_decimal(self, v: Optional[Decimal]) -> Optional[float]:
        """Serialize Decimal to float for JSON compatibility."""
        if v is None:
            return None
        return float(v)

    @property
    def start_datetime(self) -> Optional[dt.datetime]:
        """Start as a timezone-aware datetime (midnight UTC when time is unknown)."""
        if self.date is None:
            return None
        return dt.datetime.combine(
            self.date, self.time or dt.time(0, 0), tzinfo=dt.timezone.utc
        )

    @property
    def end_datetime(self) -> Optional[dt.datetime]:
        if self.end_date is None and self.end_time is None:
            return None
        end_date = self.end_date or self.date
        if end_date is None:
            return None
        return dt.datetime.combine(
            end_date, self.end_time or dt.time(0, 0), tzinfo=dt.timezone.utc
        )

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def conflict_key(self) -> Tuple[str, str]:
        """Upsert idempotency key."""
        return (self.source_id, self.external_id)
