"""
Normalization module for event data.

This package provides:
- EventNormalizer: RawEventRecord -> CanonicalEvent
- SlugAllocator: unique slug assignment with commit-time conflict retry
- Geocoder: fallback chain of geocoding strategies
- KeywordCategorizer: regex keyword categorization
- Text helpers: create_slug, truncate_description, parse_event_datetime, parse_price
"""

from .categorization import (
    CATEGORY_PATTERNS,
    DEFAULT_CATEGORY,
    BaseCategorizer,
    KeywordCategorizer,
    categorize_text,
)
from .event_normalizer import NORMALIZATION_VERSION, EventNormalizer, NormalizerConfig
from .geocoding import (
    CITY_CENTERS,
    CityKeywordGeocoder,
    GeocodeResult,
    Geocoder,
    record_coordinates,
    venue_coordinates,
)
from .slugs import SlugAllocator
from .text import create_slug, parse_event_datetime, parse_price, truncate_description

__all__ = [
    # Normalizer
    "EventNormalizer",
    "NormalizerConfig",
    "NORMALIZATION_VERSION",
    # Slugs
    "SlugAllocator",
    "create_slug",
    # Geocoding
    "Geocoder",
    "GeocodeResult",
    "CityKeywordGeocoder",
    "venue_coordinates",
    "record_coordinates",
    "CITY_CENTERS",
    # Categorization
    "BaseCategorizer",
    "KeywordCategorizer",
    "categorize_text",
    "CATEGORY_PATTERNS",
    "DEFAULT_CATEGORY",
    # Text
    "truncate_description",
    "parse_event_datetime",
    "parse_price",
]
