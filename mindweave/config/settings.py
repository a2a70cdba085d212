"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from (highest priority first):
#
#   1. Environment variables, e.g. OPENAI_API_KEY=sk-abc123
#   2. The .env file in the project root (local development only)
#   3. The defaults declared below
#
# Field ``tavily_api_key`` maps to env var ``TAVILY_API_KEY``.
# An empty string means "not configured": provider selection skips it.
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mindweave application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, Groq ...)
    anthropic_api_key: str = ""
    default_provider: str = "openai"
    llm_timeout_seconds: float = 60.0

    # === Web Search (tried in this order) ===
    tavily_api_key: str = ""
    serpapi_api_key: str = ""
    bing_search_api_key: str = ""

    # === Persistence ===
    store_backend: Literal["memory", "sqlite"] = "memory"
    store_db_path: str = "data/mindweave.db"

    # === Background scheduling ===
    # "inline" runs every ingestion in the request; "background" uses an
    # asyncio worker pool and falls back to inline when the queue is full.
    scheduler_backend: Literal["inline", "background"] = "background"
    scheduler_workers: int = 4
    scheduler_queue_size: int = 100

    # === Streaming ===
    ingestion_poll_interval: float = 1.0
    ingestion_timeout: float = 60.0
    stream_queue_size: int = 32

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers

    def get_available_search_providers(self) -> list[str]:
        """Return configured search backends in fallback order."""
        providers: list[str] = []
        if self.tavily_api_key:
            providers.append("tavily")
        if self.serpapi_api_key:
            providers.append("serpapi")
        if self.bing_search_api_key:
            providers.append("bing")
        return providers
