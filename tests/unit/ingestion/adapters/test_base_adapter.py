"""
Unit tests for the base_adapter module.

Tests for SlidingWindowRateLimiter, extract_path and BaseSourceAdapter.
"""

import asyncio

import pytest

from src.ingestion.adapters.base_adapter import (
    AdapterConfig,
    BaseSourceAdapter,
    FetchParams,
    SlidingWindowRateLimiter,
    SourceType,
    extract_path,
)

# =============================================================================
# FIXTURES
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock; sleeping advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class DummyAdapter(BaseSourceAdapter):
    async def fetch(self, location, params=None):
        return []

    def _validate_config(self):
        pass


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestSourceType:
    """Tests for SourceType enum."""

    def test_enum_values(self):
        assert SourceType.API == "api"
        assert SourceType.STATIC == "static"


class TestSlidingWindowRateLimiter:
    """Tests for the sliding-window limiter."""

    def test_no_wait_below_limit(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(3, 10, clock=clock, sleep=clock.sleep)

        async def run():
            for _ in range(3):
                await limiter.acquire()

        asyncio.run(run())
        assert clock.sleeps == []
        assert limiter.current_usage == 3

    def test_waits_only_until_oldest_leaves_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(2, 10, clock=clock, sleep=clock.sleep)

        async def run():
            await limiter.acquire()  # t=0
            clock.now = 4.0
            await limiter.acquire()  # t=4
            clock.now = 6.0
            await limiter.acquire()  # full: waits until t=10

        asyncio.run(run())
        assert clock.sleeps == [4.0]
        assert clock.now == 10.0

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(1, 5, clock=clock, sleep=clock.sleep)

        async def run():
            await limiter.acquire()
            clock.now = 5.0
            await limiter.acquire()

        asyncio.run(run())
        assert clock.sleeps == []

    def test_instances_are_independent(self):
        clock = FakeClock()
        first = SlidingWindowRateLimiter(1, 60, clock=clock, sleep=clock.sleep)
        second = SlidingWindowRateLimiter(1, 60, clock=clock, sleep=clock.sleep)

        async def run():
            await first.acquire()
            await second.acquire()

        asyncio.run(run())
        assert clock.sleeps == []

    @pytest.mark.parametrize("requests,window", [(0, 1), (1, 0)])
    def test_rejects_invalid_limits(self, requests, window):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(requests, window)


class TestExtractPath:
    """Tests for extract_path."""

    DATA = {"_embedded": {"venues": [{"name": "Arena", "city": {"name": "Austin"}}]}}

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("_embedded.venues.0.name", "Arena"),
            ("_embedded.venues.0.city.name", "Austin"),
            ("_embedded.venues.1.name", None),
            ("_embedded.missing", None),
            ("_embedded.venues.first", None),
        ],
    )
    def test_paths(self, path, expected):
        assert extract_path(self.DATA, path) == expected

    def test_empty_path_returns_data(self):
        assert extract_path(self.DATA, "") is self.DATA


class TestBaseSourceAdapter:
    """Tests for the abstract adapter."""

    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            BaseSourceAdapter(AdapterConfig(source_id="x"))  # type: ignore[abstract]

    def test_properties_and_rate_limiter(self):
        adapter = DummyAdapter(
            AdapterConfig(source_id="dummy", rate_limit_requests=7, rate_limit_window_seconds=3)
        )
        assert adapter.source_id == "dummy"
        assert adapter.source_type == SourceType.API
        assert adapter.logger.name == "adapter.dummy"
        assert adapter.rate_limiter.max_requests == 7
        assert adapter.rate_limiter.window_seconds == 3

    def test_async_context_manager(self):
        async def run():
            async with DummyAdapter(AdapterConfig(source_id="dummy")) as adapter:
                return await adapter.fetch(None, FetchParams())

        assert asyncio.run(run()) == []
