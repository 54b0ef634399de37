"""
Geocoding fallback chain.

Strategies are plain callables tried in order until one yields coordinates.
The default chain never calls an external service:

1. venue coordinates, when the record is linked to a venue with lat/lng
2. coordinates delivered on the record itself
3. keyword match of the address against known city centers, plus jitter

If nothing matches, coordinates stay unset; the event is not rejected.
Replace the chain (e.g. with a real geocoder) without touching the Normalizer.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from src.schemas.event import RawEventRecord

logger = logging.getLogger(__name__)

# City keyword -> (latitude, longitude) of the city center
CITY_CENTERS: Dict[str, Tuple[float, float]] = {
    "new york": (40.7128, -74.0060),
    "los angeles": (34.0522, -118.2437),
    "san francisco": (37.7749, -122.4194),
    "chicago": (41.8781, -87.6298),
    "austin": (30.2672, -97.7431),
    "toronto": (43.6532, -79.3832),
}

# Full width of the random offset box, in degrees (~1km)
DEFAULT_JITTER_DEGREES = 0.01


@dataclass(frozen=True)
class GeocodeResult:
    """Coordinates plus the name of the strategy that produced them."""

    latitude: float
    longitude: float
    strategy: str


GeocodingStrategy = Callable[[RawEventRecord], Optional[GeocodeResult]]


def venue_coordinates(record: RawEventRecord) -> Optional[GeocodeResult]:
    """Reuse coordinates of the linked venue."""
    venue = record.venue
    if venue is None or venue.latitude is None or venue.longitude is None:
        return None
    return GeocodeResult(venue.latitude, venue.longitude, "venue")


def record_coordinates(record: RawEventRecord) -> Optional[GeocodeResult]:
    """Use coordinates the provider delivered on the record."""
    if record.latitude is None or record.longitude is None:
        return None
    return GeocodeResult(record.latitude, record.longitude, "record")


class CityKeywordGeocoder:
    """
    Resolve an address plus city to an approximate point by city keyword.

    A small random offset keeps events of the same city from sharing exact
    coordinates.
    """

    def __init__(
        self,
        city_centers: Optional[Dict[str, Tuple[float, float]]] = None,
        jitter_degrees: float = DEFAULT_JITTER_DEGREES,
        rng: Optional[random.Random] = None,
    ):
        self.city_centers = city_centers or CITY_CENTERS
        self.jitter_degrees = jitter_degrees
        self._rng = rng or random.Random()

    def __call__(self, record: RawEventRecord) -> Optional[GeocodeResult]:
        venue = record.venue
        address = record.address or (venue.address if venue else None)
        city = record.city or (venue.city if venue else None)
        haystack = " ".join(part for part in (address, city) if part).lower()
        if not haystack:
            return None

        for name, (lat, lng) in self.city_centers.items():
            if name in haystack:
                return GeocodeResult(
                    latitude=lat + (self._rng.random() - 0.5) * self.jitter_degrees,
                    longitude=lng + (self._rng.random() - 0.5) * self.jitter_degrees,
                    strategy="city_keyword",
                )
        return None


class Geocoder:
    """Runs the strategy chain; first hit wins."""

    def __init__(self, strategies: Optional[Sequence[GeocodingStrategy]] = None):
        self.strategies: List[GeocodingStrategy] = list(
            strategies
            if strategies is not None
            else [venue_coordinates, record_coordinates, CityKeywordGeocoder()]
        )

    def geocode(self, record: RawEventRecord) -> Optional[GeocodeResult]:
        for strategy in self.strategies:
            result = strategy(record)
            if result is not None:
                return result
        logger.debug(f"No coordinates resolved for '{record.title}'")
        return None
