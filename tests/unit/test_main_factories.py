"""Unit tests for the composition root, configuration and error mapping.

Covers backend selection in ``mindweave.main``, ``load_config`` layering,
the settings-backed key vault, the provider factory and the middleware's
error-to-status mapping.  No network calls are made.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mindweave.api.middleware import error_response, status_code_for
from mindweave.config.loader import load_config
from mindweave.main import _build_all, _build_scheduler, _build_store, create_app
from mindweave.models.ingestion import SourceType
from mindweave.providers.keys.settings_key_vault import SettingsKeyVault
from mindweave.providers.llm.anthropic_provider import AnthropicLLMProvider
from mindweave.providers.llm.openai_provider import OpenAILLMProvider
from mindweave.providers.scheduler.background_scheduler import BackgroundScheduler
from mindweave.providers.scheduler.inline_scheduler import InlineScheduler
from mindweave.providers.store.memory_store import MemoryRecordStore
from mindweave.providers.store.sqlite_store import SQLiteRecordStore
from mindweave.services.synthesis.provider_catalog import build_provider_factory
from mindweave.utils.errors import (
    ConfigurationError,
    ExtractionError,
    IngestionTimeoutError,
    LLMError,
    MindweaveError,
    ModelOutputParseError,
    NotFoundError,
    SizeLimitExceededError,
    TransientFetchError,
    UnsupportedProviderError,
    UnsupportedSourceError,
    ValidationError,
)
from tests.conftest import make_settings

# ======================================================================
# Backend selection
# ======================================================================


class TestBackendSelection:
    def test_memory_store_default(self) -> None:
        assert isinstance(_build_store(make_settings()), MemoryRecordStore)

    def test_sqlite_store(self, tmp_path: Path) -> None:
        store = _build_store(make_settings(store_backend="sqlite", store_db_path=str(tmp_path / "m.db")))
        assert isinstance(store, SQLiteRecordStore)

    def test_inline_scheduler(self) -> None:
        assert isinstance(_build_scheduler(make_settings(scheduler_backend="inline")), InlineScheduler)

    def test_background_scheduler(self) -> None:
        scheduler = _build_scheduler(make_settings(scheduler_backend="background", scheduler_workers=2))
        assert isinstance(scheduler, BackgroundScheduler)
        assert scheduler.get_scheduler_name() == "background"


class TestBuildAll:
    async def test_wires_every_component(self) -> None:
        components = _build_all(make_settings(tavily_api_key="tv"))
        try:
            registry = components["provider_registry"]
            assert registry["llm"] is True
            assert registry["llm_providers"] == ["openai", "anthropic"]
            assert registry["search_providers"] == ["tavily"]
            assert registry["scheduler"] == "inline"
            assert set(components["ingestion_service"]._connectors) == set(SourceType)
            assert components["generation_stream"] is not None
        finally:
            await components["http_client"].aclose()

    async def test_degraded_without_llm_keys(self) -> None:
        components = _build_all(make_settings(openai_api_key="", anthropic_api_key=""))
        try:
            assert components["provider_registry"]["llm"] is False
        finally:
            await components["http_client"].aclose()

    def test_create_app_registers_routes(self) -> None:
        paths = {route.path for route in create_app().routes}
        assert "/api/v1/ingest" in paths
        assert "/api/v1/maps/generate" in paths
        assert "/api/v1/health" in paths


# ======================================================================
# Configuration
# ======================================================================


class TestLoadConfig:
    def test_yaml_defaults_with_env_overrides(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "chunking:\n  max_chunk_size: 500\n  overlap: 50\nstore:\n  backend: memory\n  extra: kept\n",
            encoding="utf-8",
        )

        config = load_config(str(config_file), make_settings(store_backend="sqlite"))

        assert config["chunking"] == {"max_chunk_size": 500, "overlap": 50}
        assert config["store"]["backend"] == "sqlite"
        assert config["store"]["extra"] == "kept"
        assert config["llm"]["available_providers"] == ["openai", "anthropic"]

    def test_missing_file_gives_env_only(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), make_settings())

        assert "chunking" not in config
        assert config["scheduler"]["backend"] == "inline"

    def test_repo_config_file(self, project_root: Path) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), make_settings())

        assert config["size_limits"]["pdf"] == 10 * 1024 * 1024
        assert config["llm"]["max_tokens"]["reasoning"] == 4000
        assert config["retry"]["web"]["max_attempts"] == 3


class TestSettings:
    def test_search_providers_in_fallback_order(self) -> None:
        settings = make_settings(bing_search_api_key="b", tavily_api_key="t")
        assert settings.get_available_search_providers() == ["tavily", "bing"]

    def test_llm_providers(self) -> None:
        assert make_settings(openai_api_key="").get_available_llm_providers() == ["anthropic"]


# ======================================================================
# Keys and provider factory
# ======================================================================


class TestSettingsKeyVault:
    async def test_deployment_keys(self) -> None:
        vault = SettingsKeyVault(make_settings(anthropic_api_key=""))

        assert await vault.get_api_key("u1", "openai") == "sk-test"
        assert await vault.get_api_key("u1", "anthropic") is None
        assert await vault.get_api_key(None, "mistral") is None

    async def test_user_key_overrides(self) -> None:
        vault = SettingsKeyVault(make_settings())
        vault.register_user_key("u1", "openai", "sk-user")

        assert await vault.get_api_key("u1", "openai") == "sk-user"
        assert await vault.get_api_key("u2", "openai") == "sk-test"


class TestProviderFactory:
    def test_builds_known_providers(self) -> None:
        factory = build_provider_factory(make_settings())

        assert isinstance(factory("openai", "sk-x"), OpenAILLMProvider)
        assert isinstance(factory("anthropic", "ak-x"), AnthropicLLMProvider)

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnsupportedProviderError):
            build_provider_factory(make_settings())("mistral")


# ======================================================================
# Error mapping
# ======================================================================


class TestStatusCodes:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationError(), 422),
            (UnsupportedSourceError(), 400),
            (UnsupportedProviderError(), 400),
            (NotFoundError(), 404),
            (SizeLimitExceededError(), 413),
            (ConfigurationError(), 503),
            (IngestionTimeoutError(), 504),
            (TransientFetchError(), 502),
            (ExtractionError(), 502),
            (LLMError(), 502),
            (ModelOutputParseError(), 502),
            (MindweaveError(), 500),
        ],
    )
    def test_status_for_error(self, error: MindweaveError, status: int) -> None:
        assert status_code_for(error) == status

    def test_error_body(self) -> None:
        response = error_response(ValidationError(message="bad payload", errors=["text: too short"]))

        assert response.status_code == 422
        assert response.body == b'{"error":"ValidationError","detail":"bad payload","errors":["text: too short"]}'
