"""
API Source Adapter.

Adapter for paginated JSON REST providers (Eventbrite, Ticketmaster, Yelp,
Meetup, ...). Provider differences live in configuration: the query
parameter names, the path to the result list and a field map from provider
fields to RawEventRecord fields.

Retries are not done here. Failures are raised as typed errors and the
TaskEngine decides whether to run the fetch again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import pydantic

from src.ingestion.errors import ConfigurationError, IngestionError, TransientFetchError
from src.schemas.event import RawEventRecord
from src.schemas.run import Location

from .base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchParams,
    SourceType,
    extract_path,
)

logger = logging.getLogger(__name__)


@dataclass
class APIAdapterConfig(AdapterConfig):
    """Configuration for API-based adapters."""

    base_url: str = ""
    api_key: Optional[str] = None
    api_key_required: bool = True
    headers: Dict[str, str] = field(default_factory=dict)

    # Query parameters
    location_param: str = "city"
    page_param: str = "page"
    page_size_param: str = "page_size"
    page_size: int = 50
    max_pages: int = 1
    paging: str = "page"
    params: Dict[str, Any] = field(default_factory=dict)

    # Response mapping
    results_path: str = "events"
    field_map: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Set source type to API."""
        self.source_type = SourceType.API


class APIAdapter(BaseSourceAdapter):
    """
    Adapter for API-based data sources.

    Supports:
    - Page or offset pagination
    - Sliding-window rate limiting
    - Bearer token authentication
    - Dotted-path field mapping into RawEventRecord
    """

    def __init__(
        self,
        config: APIAdapterConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the API adapter.

        Args:
            config: APIAdapterConfig with API settings
            client: Optional pre-built client (tests pass one with a MockTransport)
        """
        self._client = client
        self._owns_client = client is None
        super().__init__(config)

    @property
    def api_config(self) -> APIAdapterConfig:
        """Get typed config."""
        return self.config  # type: ignore[return-value]

    def _validate_config(self) -> None:
        """Validate API configuration."""
        if not self.api_config.base_url:
            raise ConfigurationError(
                f"API adapter '{self.source_id}' requires base_url"
            )
        if self.api_config.paging not in ("page", "offset"):
            raise ConfigurationError(
                f"Unknown paging mode '{self.api_config.paging}' for '{self.source_id}'"
            )

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", **self.api_config.headers}
        if self.api_config.api_key:
            headers["Authorization"] = f"Bearer {self.api_config.api_key}"
        return headers

    async def fetch(
        self,
        location: Location,
        params: Optional[FetchParams] = None,
    ) -> List[RawEventRecord]:
        """
        Fetch all pages for a location.

        Stops at max_pages, at a short page, or once max_events records
        have been collected.
        """
        if self.api_config.api_key_required and not self.api_config.api_key:
            raise ConfigurationError(f"Missing API key for source '{self.source_id}'")

        params = params or FetchParams()
        records: List[RawEventRecord] = []

        for page_index in range(self.api_config.max_pages):
            payload = await self._request(self._build_query(location, params, page_index))
            items = extract_path(payload, self.api_config.results_path) or []
            if not isinstance(items, list):
                items = [items]

            for item in items:
                record = self.map_record(item)
                if record is not None:
                    records.append(record)
                if params.max_events and len(records) >= params.max_events:
                    return records

            if len(items) < self.api_config.page_size:
                break

        self.logger.info(f"Fetched {len(records)} records for {location.name}")
        return records

    def _build_query(
        self,
        location: Location,
        params: FetchParams,
        page_index: int,
    ) -> Dict[str, Any]:
        cfg = self.api_config
        query: Dict[str, Any] = dict(cfg.params)
        query[cfg.location_param] = location.name
        query[cfg.page_size_param] = cfg.page_size
        if cfg.paging == "offset":
            query[cfg.page_param] = page_index * cfg.page_size
        else:
            query[cfg.page_param] = page_index + 1

        if params.categories:
            query["categories"] = ",".join(params.categories)
        if params.date_range:
            start, end = params.date_range
            query["start_date"] = start.isoformat()
            query["end_date"] = end.isoformat()
        return query

    async def _request(self, query: Dict[str, Any]) -> Any:
        """
        Perform one rate-limited GET and decode the JSON body.

        Raises:
            TransientFetchError: Network failure, timeout, 429 or 5xx
            ConfigurationError: 401/403 from the provider
            IngestionError: Any other non-success status (not retried)
        """
        await self.rate_limiter.acquire()
        client = self._get_client()

        try:
            response = await client.get(
                self.api_config.base_url,
                params=query,
                headers=self._build_headers(),
                timeout=self.api_config.request_timeout,
            )
        except httpx.TimeoutException as e:
            raise TransientFetchError(self.source_id, f"request timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TransientFetchError(self.source_id, f"network error: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise ConfigurationError(
                f"Source '{self.source_id}' rejected credentials (HTTP {status})",
                metadata={"source_id": self.source_id, "status_code": status},
            )
        if status == 429 or status >= 500:
            raise TransientFetchError(self.source_id, f"HTTP {status}", status_code=status)
        if status >= 400:
            raise IngestionError(
                f"Fetch from '{self.source_id}' failed: HTTP {status}",
                retryable=False,
                metadata={"source_id": self.source_id, "status_code": status},
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransientFetchError(self.source_id, f"invalid JSON body: {e}") from e

    def map_record(self, item: Any) -> Optional[RawEventRecord]:
        """
        Translate one provider item into a RawEventRecord.

        Keys of field_map prefixed with ``venue.`` populate the nested venue.
        Items that cannot be coerced are skipped with a warning.
        """
        if not isinstance(item, dict):
            return None

        if self.api_config.field_map:
            data: Dict[str, Any] = {}
            for target, source_path in self.api_config.field_map.items():
                value = extract_path(item, source_path)
                if value is None:
                    continue
                if target.startswith("venue."):
                    data.setdefault("venue", {})[target[len("venue."):]] = value
                else:
                    data[target] = value
        else:
            data = dict(item)
            if "title" not in data and "name" in data:
                data["title"] = data.pop("name")

        try:
            return RawEventRecord.model_validate(data)
        except pydantic.ValidationError as e:
            self.logger.warning(f"Skipping malformed item from {self.source_id}: {e}")
            return None

    async def close(self) -> None:
        """Close async HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
