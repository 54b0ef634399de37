"""
Discovery run schemas: locations, per-location results, run report and the
progress snapshot written for external monitors.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    """A target location (city) for discovery."""

    name: str
    slug: str = Field(default="", validate_default=True)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_active: bool = True

    @field_validator("slug", mode="after")
    @classmethod
    def default_slug(cls, v: str, info) -> str:
        if v:
            return v
        name = info.data.get("name", "")
        return "-".join(name.lower().split())


class CityJobResult(BaseModel):
    """Outcome of processing one location across all enabled sources."""

    location: str
    location_slug: str
    events: int = 0
    fetched: int = 0
    rejected: int = 0
    sources: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    success: bool = True


class SessionInfo(BaseModel):
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: float = 0.0


class RunSummary(BaseModel):
    total_events: int = 0
    total_fetched: int = 0
    total_rejected: int = 0
    successful_locations: int = 0
    failed_locations: int = 0
    locations_completed: List[str] = Field(default_factory=list)
    target_events: int = 0
    target_achieved: bool = False
    cancelled: bool = False


class RunPerformance(BaseModel):
    events_per_minute: float = 0.0
    average_time_per_location_ms: float = 0.0


class RunReport(BaseModel):
    """
    Final report of a discovery run.

    Produced for every run, including partially failed ones, with a
    first-class error list.
    """

    job_id: str
    session: SessionInfo
    summary: RunSummary = Field(default_factory=RunSummary)
    performance: RunPerformance = Field(default_factory=RunPerformance)
    chunks: List[List[str]] = Field(default_factory=list)
    locations: List[CityJobResult] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    quality_warnings: List[str] = Field(default_factory=list)
    engine_metrics: Dict[str, Any] = Field(default_factory=dict)


class ProgressCounters(BaseModel):
    cities_total: int
    cities_completed: int = 0
    events_scraped: int = 0
    target_events: int = 0


class ProgressSnapshot(BaseModel):
    """Progress document overwritten after each completed location."""

    session_id: str
    start_time: datetime
    status: str = "running"
    progress: ProgressCounters
    last_completed_city: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utc_now)
