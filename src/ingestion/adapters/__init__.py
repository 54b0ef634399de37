"""
Source adapters.

Every provider is reached through BaseSourceAdapter.fetch(location, params),
which returns RawEventRecords.
"""

from .api_adapter import APIAdapter, APIAdapterConfig
from .base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchParams,
    SlidingWindowRateLimiter,
    SourceType,
    extract_path,
)
from .static_adapter import StaticAdapter, StaticAdapterConfig

__all__ = [
    "AdapterConfig",
    "BaseSourceAdapter",
    "FetchParams",
    "SlidingWindowRateLimiter",
    "SourceType",
    "extract_path",
    "APIAdapter",
    "APIAdapterConfig",
    "StaticAdapter",
    "StaticAdapterConfig",
]
