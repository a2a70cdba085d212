"""Integration tests for the FastAPI endpoints using TestClient.

Services are real and share one in-memory store; only the LLM adapter,
the key vault and (where needed) the web connector or scheduler are mocked.
"""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mindweave.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from mindweave.api.routes import router as api_router
from mindweave.api.streaming import MapGenerationStream
from mindweave.config.settings import Settings
from mindweave.interfaces.connector import IConnector
from mindweave.interfaces.key_vault import IKeyVault
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.interfaces.scheduler import IScheduler
from mindweave.models.ingestion import SourceType, WebPayload
from mindweave.providers.scheduler.inline_scheduler import InlineScheduler
from mindweave.providers.store.memory_store import MemoryRecordStore
from mindweave.services.ingestion.chunker import TextChunker
from mindweave.services.ingestion.connectors.text import TextConnector
from mindweave.services.ingestion.ingestion_service import IngestionService
from mindweave.services.synthesis.engine import SynthesisEngine
from mindweave.utils.errors import ExtractionError
from tests.conftest import make_settings, outline_json, provider_response

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SOURCE_TEXT = " ".join(f"Paragraph {i} describes the growth of jazz in another city." for i in range(20))


def _make_llm() -> MagicMock:
    llm = MagicMock(spec=ILLMProvider)
    llm.get_provider_name.return_value = "openai"
    llm.generate_response = AsyncMock(return_value=provider_response(outline_json(), tokens_used=150))
    return llm


def _make_web_connector(extract: AsyncMock | None = None) -> MagicMock:
    connector = MagicMock(spec=IConnector)
    connector.source_type = SourceType.WEB
    connector.parse_payload.side_effect = lambda payload: WebPayload.model_validate(payload)
    connector.extract = extract or AsyncMock(side_effect=ExtractionError(message="No readable content"))
    return connector


def _create_test_app(
    llm: MagicMock | None = None,
    scheduler: IScheduler | None = None,
    web_connector: MagicMock | None = None,
    app_settings: Settings | None = None,
) -> tuple[FastAPI, dict[str, Any]]:
    """Create a FastAPI app wired like ``main._build_all`` but with mocked edges."""
    app_settings = app_settings or make_settings(ingestion_poll_interval=0.01, ingestion_timeout=0.1)
    llm = llm or _make_llm()
    store = MemoryRecordStore()

    key_vault = MagicMock(spec=IKeyVault)
    key_vault.get_api_key = AsyncMock(return_value="sk-test")

    ingestion = IngestionService(
        store=store,
        scheduler=scheduler or InlineScheduler(),
        connectors={
            SourceType.TEXT: TextConnector(),
            SourceType.WEB: web_connector or _make_web_connector(),
        },
        chunker=TextChunker(max_chunk_size=200, overlap=40),
    )
    engine = SynthesisEngine(
        store=store,
        key_vault=key_vault,
        provider_factory=lambda name, api_key=None: llm,
        settings=app_settings,
    )

    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    app.state.ingestion_service = ingestion
    app.state.synthesis_engine = engine
    app.state.generation_stream = MapGenerationStream(ingestion, engine, app_settings)
    app.state.provider_registry = {"llm": True, "llm_providers": ["openai"], "search_providers": []}
    app.state.version = "0.1.0"

    return app, {"store": store, "llm": llm, "engine": engine, "ingestion": ingestion}


def _events(response) -> list[dict[str, Any]]:  # noqa: ANN001
    frames = [frame for frame in response.text.split("\n\n") if frame.strip()]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: ") :]) for frame in frames]


@pytest.fixture
def client() -> TestClient:
    app, _ = _create_test_app()
    return TestClient(app)


# ---------------------------------------------------------------------------
# Ingestion endpoints
# ---------------------------------------------------------------------------


class TestIngestionEndpoints:
    def test_text_ingest_completes(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "text", "payload": {"text": _SOURCE_TEXT}},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "completed"

        status = client.get(f"/api/v1/ingest/{body['job_id']}").json()
        assert status["status"] == "completed"
        assert status["metadata"]["title"] == "Text Input"

        content = client.get(f"/api/v1/ingest/{body['job_id']}/content").json()
        assert content["content"]["word_count"] == len(_SOURCE_TEXT.split())
        assert len(content["content"]["chunks"]) > 1

    def test_unknown_source_type_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "podcast", "payload": {}},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "UnsupportedSourceError"

    def test_invalid_payload_is_422_with_details(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "text", "payload": {"text": ""}},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "ValidationError"
        assert body["errors"]

    def test_oversized_text_is_413(self) -> None:
        app, services = _create_test_app()
        services["ingestion"]._connectors[SourceType.TEXT] = TextConnector(max_size_bytes=5)

        response = TestClient(app).post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "text", "payload": {"text": "far too long"}},
        )

        assert response.status_code == 413

    def test_failed_extraction_is_502_and_recorded(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "web", "payload": {"url": "https://example.com"}},
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "No readable content"

        listing = client.get("/api/v1/workspaces/ws/sources").json()
        assert listing["total"] == 1
        assert listing["sources"][0]["status"] == "failed"
        assert listing["sources"][0]["error"] == "No readable content"

    def test_unknown_job_is_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/ingest/missing").status_code == 404
        assert client.delete("/api/v1/ingest/missing").status_code == 404

    def test_list_and_delete_sources(self, client: TestClient) -> None:
        created = client.post(
            "/api/v1/ingest",
            json={"workspace_id": "ws", "source_type": "text", "payload": {"text": "Hello.", "title": "Hi"}},
        ).json()

        listing = client.get("/api/v1/workspaces/ws/sources", params={"limit": 10}).json()
        assert [source["title"] for source in listing["sources"]] == ["Hi"]
        assert listing["limit"] == 10

        assert client.delete(f"/api/v1/ingest/{created['job_id']}").status_code == 204
        assert client.get("/api/v1/workspaces/ws/sources").json()["total"] == 0

    def test_list_limit_validated(self, client: TestClient) -> None:
        assert client.get("/api/v1/workspaces/ws/sources", params={"limit": 0}).status_code == 422


# ---------------------------------------------------------------------------
# Streaming generation
# ---------------------------------------------------------------------------


class TestGenerateStream:
    def test_prompt_only_event_order(self, client: TestClient) -> None:
        response = client.post("/api/v1/maps/generate", json={"workspace_id": "ws", "prompt": "Jazz"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = _events(response)
        types = [event["type"] for event in events]
        assert types == ["start", "streaming", "node", "node", "node", "node", "map", "complete"]
        assert [event["index"] for event in events if event["type"] == "node"] == [1, 2, 3, 4]
        assert [event["title"] for event in events if event["type"] == "node"] == [
            "Origins",
            "Ragtime",
            "Blues",
            "Bebop",
        ]

        complete = events[-1]
        assert complete["map_id"] == events[-2]["map_id"]
        assert complete["title"] == "Jazz History"
        assert complete["node_count"] == 4
        assert complete["tokens_used"] == 150

        document = client.get(f"/api/v1/maps/{complete['map_id']}").json()
        assert document["title"] == "Jazz History"
        assert document["metadata"]["total_nodes"] == 4

    def test_text_source_ingested_first(self) -> None:
        app, services = _create_test_app()
        response = TestClient(app).post(
            "/api/v1/maps/generate",
            json={
                "workspace_id": "ws",
                "source": {"source_type": "text", "payload": {"text": _SOURCE_TEXT}},
            },
        )

        types = [event["type"] for event in _events(response)]
        assert types[0] == "start"
        assert types[1:4] == ["processing", "processing", "processing"]
        assert types[4] == "streaming"
        assert types[-2:] == ["map", "complete"]

        user_prompt = services["llm"].generate_response.await_args.args[0]
        assert "Paragraph 0 describes" in user_prompt

    def test_failed_source_yields_single_error(self) -> None:
        app, services = _create_test_app()
        response = TestClient(app).post(
            "/api/v1/maps/generate",
            json={"workspace_id": "ws", "source_url": "https://example.com/article"},
        )

        events = _events(response)
        assert events[0]["type"] == "start"
        assert events[-1] == {"type": "error", "error": "No readable content"}
        assert [event["type"] for event in events].count("error") == 1
        assert "complete" not in [event["type"] for event in events]
        services["llm"].generate_response.assert_not_awaited()

    def test_ingestion_timeout_yields_single_error(self) -> None:
        scheduler = MagicMock(spec=IScheduler)
        scheduler.submit.return_value = True  # accepted, never run
        app, _ = _create_test_app(scheduler=scheduler)

        response = TestClient(app).post(
            "/api/v1/maps/generate",
            json={"workspace_id": "ws", "source_url": "https://example.com/article"},
        )

        events = _events(response)
        types = [event["type"] for event in events]
        assert types[0] == "start"
        assert "processing" in types
        assert types[-1] == "error"
        assert types.count("error") == 1
        assert "complete" not in types
        assert "did not finish" in events[-1]["error"]

    def test_malformed_model_output_yields_error(self) -> None:
        llm = _make_llm()
        llm.generate_response.return_value = provider_response("I cannot produce JSON today.")
        app, services = _create_test_app(llm=llm)

        response = TestClient(app).post("/api/v1/maps/generate", json={"workspace_id": "ws", "prompt": "Jazz"})

        types = [event["type"] for event in _events(response)]
        assert types == ["start", "streaming", "error"]

    def test_request_needs_some_input(self, client: TestClient) -> None:
        response = client.post("/api/v1/maps/generate", json={"workspace_id": "ws", "prompt": "   "})
        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Map operations
# ---------------------------------------------------------------------------


class TestMapEndpoints:
    def _generate(self, client: TestClient) -> str:
        events = _events(client.post("/api/v1/maps/generate", json={"workspace_id": "ws", "prompt": "Jazz"}))
        return events[-1]["map_id"]

    def _node_id(self, client: TestClient, map_id: str, title: str) -> str:
        document = client.get(f"/api/v1/maps/{map_id}").json()
        stack = list(document["root_nodes"])
        while stack:
            node = stack.pop()
            if node.get("title") == title:
                return node["id"]
            stack.extend(node.get("children", []))
        raise AssertionError(title)

    def test_expand_node(self) -> None:
        app, services = _create_test_app()
        client = TestClient(app)
        map_id = self._generate(client)
        node_id = self._node_id(client, map_id, "Bebop")
        services["llm"].generate_response.return_value = provider_response(
            json.dumps({"children": [{"title": "Charlie Parker", "content": "Alto saxophonist"}]})
        )

        response = client.post(f"/api/v1/maps/{map_id}/nodes/{node_id}/expand", json={"prompt": "Players"})

        assert response.status_code == 200
        body = response.json()
        assert [child["title"] for child in body["node"]["children"]] == ["Charlie Parker"]
        assert len(body["created_node_ids"]) == 1

        job = client.get(f"/api/v1/generation-jobs/{body['job_id']}").json()
        assert job["operation"] == "expand"
        assert job["status"] == "completed"

    def test_expand_depth_validated(self, client: TestClient) -> None:
        response = client.post("/api/v1/maps/m/nodes/n/expand", json={"depth": 9})
        assert response.status_code == 422

    def test_regenerate_replaces_children(self) -> None:
        app, services = _create_test_app()
        client = TestClient(app)
        map_id = self._generate(client)
        node_id = self._node_id(client, map_id, "Origins")
        services["llm"].generate_response.return_value = provider_response(
            json.dumps(
                {
                    "title": "Roots",
                    "content": "Where it began",
                    "children": [{"title": "Congo Square", "content": "Sunday gatherings"}],
                }
            )
        )

        body = client.post(f"/api/v1/maps/{map_id}/nodes/{node_id}/regenerate", json={}).json()

        assert body["node"]["title"] == "Roots"
        assert [child["title"] for child in body["node"]["children"]] == ["Congo Square"]
        assert len(body["removed_node_ids"]) == 2

    def test_summarize(self) -> None:
        app, services = _create_test_app()
        client = TestClient(app)
        map_id = self._generate(client)
        services["llm"].generate_response.return_value = provider_response("Jazz in one paragraph.")

        body = client.post(f"/api/v1/maps/{map_id}/summarize", json={}).json()

        assert body["summary"] == "Jazz in one paragraph."
        assert client.get(f"/api/v1/maps/{map_id}").json()["summary"] == "Jazz in one paragraph."

    def test_export_formats(self, client: TestClient) -> None:
        map_id = self._generate(client)

        markdown = client.get(f"/api/v1/maps/{map_id}/export")
        text = client.get(f"/api/v1/maps/{map_id}/export", params={"format": "text", "include_metadata": "false"})
        as_json = client.get(f"/api/v1/maps/{map_id}/export", params={"format": "json"})

        assert markdown.status_code == 200
        assert markdown.headers["content-type"].startswith("text/markdown")
        assert markdown.headers["content-disposition"] == 'attachment; filename="jazz_history.md"'
        assert markdown.text.startswith("# Jazz History\n")
        assert "### Ragtime" in markdown.text
        assert text.headers["content-type"].startswith("text/plain")
        assert text.text.splitlines()[:3] == ["- Origins", "  New Orleans at the turn of the century", "  - Ragtime"]
        assert as_json.json()["mind_map"]["id"] == map_id
        assert [node["title"] for node in as_json.json()["nodes"]] == ["Origins", "Bebop"]

    def test_export_rejects_unknown_format(self, client: TestClient) -> None:
        map_id = self._generate(client)

        assert client.get(f"/api/v1/maps/{map_id}/export", params={"format": "docx"}).status_code == 422
        assert client.get("/api/v1/maps/missing/export").status_code == 404

    def test_unknown_map_is_404(self, client: TestClient) -> None:
        response = client.get("/api/v1/maps/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_unknown_generation_job_is_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/generation-jobs/missing").status_code == 404


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_healthy_with_llm(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["version"] == "0.1.0"
        assert body["providers"]["llm_providers"] == ["openai"]

    def test_degraded_without_llm(self) -> None:
        app, _ = _create_test_app()
        app.state.provider_registry = {"llm": False}

        assert TestClient(app).get("/api/v1/health").json()["status"] == "degraded"
