"""
Static Source Adapter.

Serves records from configuration instead of the network. Used to seed a
database offline and as a deterministic source in tests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pydantic

from src.schemas.event import RawEventRecord
from src.schemas.run import Location

from .base_adapter import AdapterConfig, BaseSourceAdapter, FetchParams, SourceType


@dataclass
class StaticAdapterConfig(AdapterConfig):
    """
    Records are raw dicts in RawEventRecord shape. A record whose ``city``
    (or venue city) is set only matches that location; records without a
    city match every location.
    """

    records: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        self.source_type = SourceType.STATIC


class StaticAdapter(BaseSourceAdapter):
    """Adapter returning configured records."""

    @property
    def static_config(self) -> StaticAdapterConfig:
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        pass

    async def fetch(
        self,
        location: Location,
        params: Optional[FetchParams] = None,
    ) -> List[RawEventRecord]:
        params = params or FetchParams()
        await self.rate_limiter.acquire()

        records = []
        for raw in self.static_config.records:
            if not self._matches_location(raw, location):
                continue
            try:
                records.append(RawEventRecord.model_validate(raw))
            except pydantic.ValidationError as e:
                self.logger.warning(f"Skipping malformed static record: {e}")
                continue
            if params.max_events and len(records) >= params.max_events:
                break

        self.logger.debug(f"Serving {len(records)} static records for {location.name}")
        return records

    @staticmethod
    def _matches_location(raw: Dict[str, Any], location: Location) -> bool:
        venue = raw.get("venue") or {}
        city = raw.get("city") or (venue.get("city") if isinstance(venue, dict) else None)
        if not city:
            return True
        return str(city).strip().lower() == location.name.strip().lower()
