"""
Base Source Adapter.

Abstract base class defining the interface for all source adapters.
Implements the Strategy pattern for different data fetching strategies:
every provider sits behind ``fetch(location, params)`` and returns
RawEventRecords, so the Orchestrator never sees provider quirks.
"""

import asyncio
import datetime as dt
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Tuple

from src.schemas.event import RawEventRecord
from src.schemas.run import Location


class SourceType(str, Enum):
    """Type of data source."""

    API = "api"
    STATIC = "static"


@dataclass
class FetchParams:
    """Per-run filters passed to every adapter."""

    categories: Optional[List[str]] = None
    date_range: Optional[Tuple[dt.date, dt.date]] = None
    max_events: Optional[int] = None


@dataclass
class AdapterConfig:
    """
    Base configuration for source adapters.

    Extended by specific adapter types (API, Static).
    """

    source_id: str
    source_type: SourceType = SourceType.API
    request_timeout: int = 30
    rate_limit_requests: int = 60
    rate_limit_window_seconds: float = 60.0
    custom_config: Dict[str, Any] = field(default_factory=dict)


class SlidingWindowRateLimiter:
    """
    Allow at most ``max_requests`` within any ``window_seconds`` window.

    When the window is full, ``acquire()`` sleeps only until the oldest
    request leaves the window. State is per instance, so each adapter
    throttles independently.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._timestamps and self._timestamps[0] <= now - self.window_seconds:
            self._timestamps.popleft()

    @property
    def current_usage(self) -> int:
        """Requests counted in the current window."""
        self._evict(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return
                wait = self._timestamps[0] + self.window_seconds - now
                await self._sleep(max(wait, 0.0))


def extract_path(data: Any, path: str) -> Any:
    """
    Read a dotted path from nested dicts/lists ("_embedded.venues.0.name").

    Returns None when any segment is missing.
    """
    if not path:
        return data
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class BaseSourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - fetch(): Fetch raw records for one location
        - _validate_config(): Validate adapter-specific configuration
    """

    def __init__(self, config: AdapterConfig):
        """
        Initialize the adapter.

        Args:
            config: AdapterConfig with source-specific settings
        """
        self.config = config
        self.logger = logging.getLogger(f"adapter.{config.source_id}")
        self.rate_limiter = SlidingWindowRateLimiter(
            config.rate_limit_requests, config.rate_limit_window_seconds
        )
        self._validate_config()

    @property
    def source_type(self) -> SourceType:
        """Get the source type."""
        return self.config.source_type

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self.config.source_id

    @abstractmethod
    async def fetch(
        self,
        location: Location,
        params: Optional[FetchParams] = None,
    ) -> List[RawEventRecord]:
        """
        Fetch raw records for one location.

        Raises:
            TransientFetchError: Network or provider hiccup (retried by the engine)
            ConfigurationError: Missing credentials or bad configuration
        """
        pass

    @abstractmethod
    def _validate_config(self) -> None:
        """
        Validate adapter-specific configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the adapter."""
        pass

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
