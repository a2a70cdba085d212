"""Shared pytest fixtures for the mindweave test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from mindweave.config.settings import Settings
from mindweave.interfaces.key_vault import IKeyVault
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from mindweave.models.generation import ProviderResponse
from mindweave.models.ingestion import SourceType
from mindweave.providers.scheduler.inline_scheduler import InlineScheduler
from mindweave.providers.store.memory_store import MemoryRecordStore
from mindweave.services.ingestion.chunker import TextChunker
from mindweave.services.ingestion.connectors.text import TextConnector
from mindweave.services.ingestion.ingestion_service import IngestionService
from mindweave.services.synthesis.engine import SynthesisEngine

# ---------------------------------------------------------------------------
# Settings / config
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Settings with test keys and no .env influence."""
    defaults: dict[str, Any] = {
        "openai_api_key": "sk-test",
        "anthropic_api_key": "test-anthropic",
        "tavily_api_key": "",
        "serpapi_api_key": "",
        "bing_search_api_key": "",
        "default_provider": "openai",
        "store_backend": "memory",
        "scheduler_backend": "inline",
        "ingestion_poll_interval": 0.01,
        "ingestion_timeout": 1.0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture
def project_root() -> Path:
    return Path(__file__).parent.parent


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Outline fixtures
# ---------------------------------------------------------------------------


def outline_json(**overrides: Any) -> str:
    """A small, valid model response for ``mindmap-reasoning``."""
    payload: dict[str, Any] = {
        "title": "Jazz History",
        "description": "Major eras of jazz",
        "root_nodes": [
            {
                "title": "Origins",
                "content": "New Orleans at the turn of the century",
                "children": [
                    {"title": "Ragtime", "content": "Syncopated piano music"},
                    {"title": "Blues", "content": "Twelve-bar vocal tradition"},
                ],
            },
            {
                "title": "Bebop",
                "content": "Fast tempos and complex harmony in the 1940s",
                "children": [],
            },
        ],
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def sample_outline_data() -> dict[str, Any]:
    """A valid outline document with explicit ids, levels and orders."""
    return {
        "title": "Test Map",
        "root_nodes": [
            {
                "id": "root-1",
                "title": "Root",
                "content": "Root content",
                "level": 0,
                "order": 0,
                "children": [
                    {
                        "id": "child-1",
                        "parent_id": "root-1",
                        "content": "First child",
                        "level": 1,
                        "order": 0,
                        "children": [
                            {
                                "id": "grandchild-1",
                                "parent_id": "child-1",
                                "content": "Grandchild",
                                "level": 2,
                                "order": 0,
                            }
                        ],
                    },
                    {
                        "id": "child-2",
                        "parent_id": "root-1",
                        "content": "Second child",
                        "level": 1,
                        "order": 1,
                    },
                ],
            }
        ],
        "metadata": {"total_nodes": 4, "max_depth": 2},
    }


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------


def provider_response(content: str, tokens_used: int = 120, provider: str = "openai") -> ProviderResponse:
    return ProviderResponse(content=content, tokens_used=tokens_used, provider=provider, model="test-model")


@pytest.fixture
def mock_llm_provider() -> MagicMock:
    """An ILLMProvider mock whose response is set per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "openai"
    mock.is_available.return_value = True
    mock.estimate_tokens.return_value = 10
    mock.generate_response = AsyncMock(return_value=provider_response(outline_json()))
    return mock


@pytest.fixture
def mock_key_vault() -> MagicMock:
    mock = MagicMock(spec=IKeyVault)
    mock.get_api_key = AsyncMock(return_value="sk-test")
    return mock


@pytest.fixture
def mock_search_provider() -> MagicMock:
    mock = MagicMock(spec=IWebSearchProvider)
    mock.get_provider_name.return_value = "tavily"
    mock.is_available.return_value = True
    mock.search = AsyncMock(
        return_value=[
            SearchResult(title="Result One", url="https://example.com/1", snippet="First snippet"),
            SearchResult(title="Result Two", url="https://example.com/2", snippet="Second snippet"),
        ]
    )
    return mock


# ---------------------------------------------------------------------------
# Services wired to the in-memory store
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def ingestion_service(memory_store: MemoryRecordStore) -> IngestionService:
    return IngestionService(
        store=memory_store,
        scheduler=InlineScheduler(),
        connectors={SourceType.TEXT: TextConnector()},
        chunker=TextChunker(max_chunk_size=200, overlap=40),
    )


@pytest.fixture
def synthesis_engine(
    memory_store: MemoryRecordStore,
    mock_key_vault: MagicMock,
    mock_llm_provider: MagicMock,
    settings: Settings,
) -> SynthesisEngine:
    return SynthesisEngine(
        store=memory_store,
        key_vault=mock_key_vault,
        provider_factory=lambda name, api_key=None: mock_llm_provider,
        settings=settings,
    )
