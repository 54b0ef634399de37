"""Configuration loader for the event discovery pipeline."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.configs.settings import Settings, get_settings
from src.ingestion.errors import ConfigurationError
from src.ingestion.task_engine import TaskEngineConfig
from src.schemas.run import Location

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z0-9_]+)\}")


# ============================================================================
# CONFIG SECTIONS
# ============================================================================


class EngineSection(BaseModel):
    """Task Engine limits."""

    max_workers: int = Field(default=5, ge=1)
    timeout_ms: int = Field(default=30_000, ge=1)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=1_000, ge=0)

    def to_engine_config(self) -> TaskEngineConfig:
        return TaskEngineConfig(**self.model_dump())


class OrchestratorSection(BaseModel):
    """Discovery run settings."""

    location_concurrency: int = Field(default=2, ge=1)
    target_events: int = Field(default=1000, ge=0)
    max_events_per_source: Optional[int] = Field(default=None, ge=1)


class ProcessorSection(BaseModel):
    """Event Processor batching."""

    batch_size: int = Field(default=25, ge=1)
    batch_pause_seconds: float = Field(default=1.0, ge=0)


class RateLimitSection(BaseModel):
    requests: int = Field(default=60, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class SourceSection(BaseModel):
    """
    One source entry. ``adapter`` selects the registered adapter class; the
    remaining keys are passed to that adapter's config.
    """

    model_config = ConfigDict(extra="allow")

    source_id: str
    adapter: str = "api"
    enabled: bool = True
    request_timeout: int = 30
    rate_limit: RateLimitSection = Field(default_factory=RateLimitSection)

    # api adapter
    base_url: str = ""
    api_key: Optional[str] = None
    location_param: str = "city"
    page_param: str = "page"
    # "page" sends 1-based page numbers, "offset" sends item offsets
    paging: str = "page"
    page_size_param: str = "page_size"
    page_size: int = Field(default=50, ge=1)
    max_pages: int = Field(default=1, ge=1)
    results_path: str = "events"
    params: Dict[str, Any] = Field(default_factory=dict)
    field_map: Dict[str, str] = Field(default_factory=dict)

    # static adapter
    records: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("api_key", mode="before")
    @classmethod
    def empty_key_is_none(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v


class IngestionConfig(BaseModel):
    """Root of ingestion.yaml."""

    engine: EngineSection = Field(default_factory=EngineSection)
    orchestrator: OrchestratorSection = Field(default_factory=OrchestratorSection)
    processor: ProcessorSection = Field(default_factory=ProcessorSection)
    sources: List[SourceSection] = Field(default_factory=list)
    locations: List[Location] = Field(default_factory=list)

    @property
    def enabled_sources(self) -> List[SourceSection]:
        return [s for s in self.sources if s.enabled]

    @property
    def active_locations(self) -> List[Location]:
        return [loc for loc in self.locations if loc.is_active]


# ============================================================================
# LOADING
# ============================================================================


def substitute_placeholders(content: str, values: Mapping[str, Any]) -> str:
    """
    Replace ``${NAME}`` placeholders with values from settings or the environment.

    Unknown and unset names become empty strings.
    """

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        value = values.get(key, os.environ.get(key))
        if value is None:
            return ""
        # Handle SecretStr
        if hasattr(value, "get_secret_value"):
            return value.get_secret_value()
        return str(value)

    return _PLACEHOLDER.sub(_replace, content)


def load_ingestion_config(
    path: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> IngestionConfig:
    """
    Load and validate the ingestion YAML.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    settings = settings or get_settings()
    path = Path(path) if path is not None else settings.INGESTION_CONFIG_PATH
    if not path.exists():
        raise ConfigurationError(f"Missing config at {path}")

    try:
        with open(path, encoding="utf-8") as f:
            content = substitute_placeholders(f.read(), settings.model_dump())
        raw = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config at {path}: {e}") from e

    try:
        return IngestionConfig.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid config at {path}: {e}") from e
