"""
Unit tests for the config module.

Tests for placeholder substitution and ingestion.yaml loading.
"""

from pathlib import Path

import pytest
from pydantic import SecretStr

from src.configs.config import (
    IngestionConfig,
    SourceSection,
    load_ingestion_config,
    substitute_placeholders,
)
from src.configs.settings import Settings
from src.ingestion.errors import ConfigurationError

BUNDLED_CONFIG = Path(__file__).resolve().parents[3] / "src" / "configs" / "ingestion.yaml"


@pytest.fixture
def settings():
    return Settings(_env_file=None, EVENTBRITE_API_KEY="eb-secret")


class TestSubstitutePlaceholders:
    """Tests for substitute_placeholders."""

    def test_replaces_known_values(self):
        assert substitute_placeholders("key: ${API_KEY}", {"API_KEY": "abc"}) == "key: abc"

    def test_secret_values_unwrapped(self):
        out = substitute_placeholders("${KEY}", {"KEY": SecretStr("hidden")})
        assert out == "hidden"

    def test_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("DISCOVERY_TEST_VAR", "from-env")
        assert substitute_placeholders("${DISCOVERY_TEST_VAR}", {}) == "from-env"

    def test_unset_becomes_empty(self, monkeypatch):
        monkeypatch.delenv("DISCOVERY_UNSET_VAR", raising=False)
        assert substitute_placeholders("key: '${DISCOVERY_UNSET_VAR}'", {}) == "key: ''"


class TestLoadIngestionConfig:
    """Tests for load_ingestion_config."""

    def test_bundled_config(self, settings):
        config = load_ingestion_config(BUNDLED_CONFIG, settings)

        assert [loc.slug for loc in config.active_locations] == [
            "new-york",
            "los-angeles",
            "san-francisco",
            "chicago",
            "austin",
        ]
        assert config.orchestrator.location_concurrency == 2
        assert config.processor.batch_size == 25
        assert [s.source_id for s in config.enabled_sources] == ["eventbrite", "ticketmaster"]

        eventbrite = config.sources[0]
        assert eventbrite.api_key == "eb-secret"
        # unset key turns into None, not ""
        assert config.sources[1].api_key is None

    def test_engine_section_to_engine_config(self, settings):
        config = load_ingestion_config(BUNDLED_CONFIG, settings)
        engine_config = config.engine.to_engine_config()
        assert engine_config.max_workers == 5
        assert engine_config.retry_delay_ms == 1000

    def test_missing_file(self, tmp_path, settings):
        with pytest.raises(ConfigurationError, match="Missing config"):
            load_ingestion_config(tmp_path / "nope.yaml", settings)

    def test_invalid_yaml(self, tmp_path, settings):
        path = tmp_path / "bad.yaml"
        path.write_text("engine: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Cannot read config"):
            load_ingestion_config(path, settings)

    def test_invalid_values(self, tmp_path, settings):
        path = tmp_path / "bad.yaml"
        path.write_text("engine:\n  max_workers: 0\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid config"):
            load_ingestion_config(path, settings)

    def test_empty_file_gives_defaults(self, tmp_path, settings):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        config = load_ingestion_config(path, settings)
        assert config == IngestionConfig()


class TestSourceSection:
    """Tests for SourceSection."""

    def test_defaults(self):
        section = SourceSection(source_id="meetup")
        assert section.adapter == "api"
        assert section.enabled is True
        assert section.rate_limit.requests == 60

    def test_blank_api_key_is_none(self):
        assert SourceSection(source_id="x", api_key="  ").api_key is None
