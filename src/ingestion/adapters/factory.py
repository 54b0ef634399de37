"""
Adapter Factory for config-driven adapter creation.

Usage:
    from src.ingestion.adapters.factory import create_adapters_from_config

    adapters = create_adapters_from_config(load_ingestion_config())

New adapter kinds register themselves with ``@register_adapter("kind")`` and
receive the SourceSection of ingestion.yaml.
"""

import logging
from typing import Callable, Dict, Iterable, Optional

from src.configs.config import IngestionConfig, SourceSection
from src.ingestion.errors import ConfigurationError

from .api_adapter import APIAdapter, APIAdapterConfig
from .base_adapter import BaseSourceAdapter
from .static_adapter import StaticAdapter, StaticAdapterConfig

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[SourceSection], BaseSourceAdapter]

# Registry of available adapter kinds
ADAPTER_REGISTRY: Dict[str, AdapterBuilder] = {}


def register_adapter(kind: str):
    """
    Decorator to register an adapter builder.

    Usage:
        @register_adapter("api")
        def build_api_adapter(section): ...
    """

    def decorator(builder: AdapterBuilder) -> AdapterBuilder:
        ADAPTER_REGISTRY[kind] = builder
        return builder

    return decorator


@register_adapter("api")
def build_api_adapter(section: SourceSection) -> APIAdapter:
    return APIAdapter(
        APIAdapterConfig(
            source_id=section.source_id,
            request_timeout=section.request_timeout,
            rate_limit_requests=section.rate_limit.requests,
            rate_limit_window_seconds=section.rate_limit.window_seconds,
            base_url=section.base_url,
            api_key=section.api_key,
            location_param=section.location_param,
            page_param=section.page_param,
            page_size_param=section.page_size_param,
            page_size=section.page_size,
            max_pages=section.max_pages,
            paging=section.paging,
            params=dict(section.params),
            results_path=section.results_path,
            field_map=dict(section.field_map),
        )
    )


@register_adapter("static")
def build_static_adapter(section: SourceSection) -> StaticAdapter:
    return StaticAdapter(
        StaticAdapterConfig(
            source_id=section.source_id,
            rate_limit_requests=section.rate_limit.requests,
            rate_limit_window_seconds=section.rate_limit.window_seconds,
            records=list(section.records),
        )
    )


def create_adapter(section: SourceSection) -> BaseSourceAdapter:
    """
    Create an adapter for one configured source.

    Raises:
        ConfigurationError: If the adapter kind is not registered
    """
    builder = ADAPTER_REGISTRY.get(section.adapter)
    if builder is None:
        raise ConfigurationError(
            f"Unknown adapter '{section.adapter}' for source '{section.source_id}'. "
            f"Available: {sorted(ADAPTER_REGISTRY)}"
        )
    return builder(section)


def create_adapters_from_config(
    config: IngestionConfig,
    only: Optional[Iterable[str]] = None,
) -> Dict[str, BaseSourceAdapter]:
    """
    Create adapters for all enabled sources.

    A source whose adapter cannot be built is logged and left out; the other
    sources still run.

    Args:
        config: Loaded ingestion config
        only: Optional subset of source ids to build

    Returns:
        Dict mapping source_id -> adapter
    """
    wanted = set(only) if only is not None else None
    adapters: Dict[str, BaseSourceAdapter] = {}

    for section in config.enabled_sources:
        if wanted is not None and section.source_id not in wanted:
            continue
        try:
            adapters[section.source_id] = create_adapter(section)
            logger.info(f"Created adapter: {section.source_id} ({section.adapter})")
        except ConfigurationError as e:
            logger.warning(f"Failed to create adapter '{section.source_id}': {e}")

    return adapters
