"""FastAPI application entry point and composition root.

``_build_all`` wires every provider and service from :class:`Settings` and
the YAML config; the lifespan puts the result on ``app.state`` where the
route dependencies pick it up.  Which implementation backs each interface
is decided here and nowhere else:

    Interface          Implementations                Selected by
    ───────────────────────────────────────────────────────────────────────
    IRecordStore       MemoryRecordStore, SQLite...   STORE_BACKEND
    IScheduler         InlineScheduler, Background... SCHEDULER_BACKEND
    IWebSearchProvider Tavily, SerpAPI, Bing          which keys are set
    ILLMProvider       OpenAI, Anthropic              per request + key vault
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from mindweave.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware, configure_cors
from mindweave.api.routes import router as api_router
from mindweave.api.streaming import MapGenerationStream
from mindweave.config.loader import load_config
from mindweave.config.settings import Settings
from mindweave.interfaces.record_store import IRecordStore
from mindweave.interfaces.scheduler import IScheduler
from mindweave.providers.keys.settings_key_vault import SettingsKeyVault
from mindweave.providers.scheduler.background_scheduler import BackgroundScheduler
from mindweave.providers.scheduler.inline_scheduler import InlineScheduler
from mindweave.providers.search import build_search_providers
from mindweave.providers.store.memory_store import MemoryRecordStore
from mindweave.providers.store.sqlite_store import SQLiteRecordStore
from mindweave.services.ingestion.chunker import TextChunker
from mindweave.services.ingestion.connectors import build_connector_registry
from mindweave.services.ingestion.ingestion_service import IngestionService
from mindweave.services.synthesis.engine import SynthesisEngine
from mindweave.services.synthesis.provider_catalog import ProviderCatalog, build_provider_factory
from mindweave.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

_HTTP_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def _build_store(app_settings: Settings) -> IRecordStore:
    if app_settings.store_backend == "sqlite":
        return SQLiteRecordStore(app_settings.store_db_path)
    return MemoryRecordStore()


def _build_scheduler(app_settings: Settings) -> IScheduler:
    if app_settings.scheduler_backend == "background":
        return BackgroundScheduler(
            workers=app_settings.scheduler_workers,
            queue_size=app_settings.scheduler_queue_size,
        )
    return InlineScheduler()


# ---------------------------------------------------------------------------
# Dependency injection
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service; keys become ``app.state`` attributes."""
    config = load_config(settings=app_settings)
    http_client = httpx.AsyncClient(timeout=_HTTP_TIMEOUT, follow_redirects=True)

    store = _build_store(app_settings)
    scheduler = _build_scheduler(app_settings)

    search_providers = build_search_providers(
        app_settings, http_client, config.get("websearch", {}).get("provider_order")
    )
    connectors = build_connector_registry(http_client, search_providers, config)
    chunking = config.get("chunking", {})
    chunker = TextChunker(
        max_chunk_size=int(chunking.get("max_chunk_size", 1000)),
        overlap=int(chunking.get("overlap", 200)),
    )
    ingestion_service = IngestionService(store, scheduler, connectors, chunker)

    catalog = ProviderCatalog(config)
    synthesis_engine = SynthesisEngine(
        store=store,
        key_vault=SettingsKeyVault(app_settings),
        provider_factory=build_provider_factory(app_settings, catalog),
        settings=app_settings,
        catalog=catalog,
    )
    generation_stream = MapGenerationStream(ingestion_service, synthesis_engine, app_settings)

    llm_providers = app_settings.get_available_llm_providers()
    provider_registry = {
        "llm": bool(llm_providers),
        "llm_providers": llm_providers,
        "default_provider": app_settings.default_provider,
        "search_providers": [p.get_provider_name() for p in search_providers if p.is_available()],
        "store": app_settings.store_backend,
        "scheduler": scheduler.get_scheduler_name(),
    }

    return {
        "config": config,
        "http_client": http_client,
        "store": store,
        "scheduler": scheduler,
        "ingestion_service": ingestion_service,
        "synthesis_engine": synthesis_engine,
        "generation_stream": generation_stream,
        "provider_registry": provider_registry,
        "version": str(config.get("app", {}).get("version", "0.1.0")),
    }


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    store: IRecordStore = components["store"]
    scheduler: IScheduler = components["scheduler"]
    await store.initialize()
    await scheduler.start()

    _logger.info(
        "app_startup",
        version=components["version"],
        environment=settings.app_env,
        store=settings.store_backend,
        scheduler=scheduler.get_scheduler_name(),
        llm_providers=components["provider_registry"]["llm_providers"],
    )

    yield

    await scheduler.stop()
    await store.close()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Scheduler stopped, store and HTTP client closed")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Mindweave API",
        version="0.1.0",
        description=(
            "Ingest text, YouTube, PDF, web and web-search sources, then "
            "synthesize, expand and summarize hierarchical mind maps with "
            "OpenAI or Anthropic models."
        ),
        lifespan=_lifespan,
    )

    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origins)

    application.include_router(api_router)
    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "mindweave.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
