"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.  When
``openai_base_url`` is configured (TogetherAI, Groq, Fireworks ...) the
client points at that URL instead of the default OpenAI endpoint, so this
one adapter covers every OpenAI-compatible backend.

Outline generation asks for ``response_format={"type": "json_object"}``;
summaries are plain text.
"""

from __future__ import annotations

import openai
import structlog

from mindweave.config.settings import Settings
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.models.generation import GenerationOptions, ProviderResponse
from mindweave.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "gpt-4o-mini"


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        settings: Settings,
        api_key: str | None = None,
        default_model: str | None = None,
    ) -> None:
        self._settings = settings
        # A per-user key from the key vault wins over the deployment key.
        self._api_key = api_key or settings.openai_api_key
        self._client = self._make_client(self._api_key)
        self._default_model = default_model or _DEFAULT_MODEL
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    def _make_client(self, api_key: str) -> openai.AsyncOpenAI:
        client_kwargs: dict = {
            "api_key": api_key or "missing",
            "timeout": openai.Timeout(self._settings.llm_timeout_seconds, connect=5.0),
        }
        if self._settings.openai_base_url:
            client_kwargs["base_url"] = self._settings.openai_base_url
        return openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def generate_response(
        self,
        user_prompt: str,
        options: GenerationOptions,
    ) -> ProviderResponse:
        """Run one chat completion with an optional system message."""
        model = options.model or self._default_model
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        request: dict = {
            "model": model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if options.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out after {self._settings.llm_timeout_seconds:g}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        tokens = response.usage.total_tokens if response.usage else 0
        logger.info(
            "openai_completion",
            model=model,
            provider=self._provider_label,
            tokens=tokens,
            json_mode=options.json_mode,
        )
        return ProviderResponse(
            content=content,
            tokens_used=tokens,
            provider=self.get_provider_name(),
            model=model,
        )

    async def validate_key(self, api_key: str) -> bool:
        """List models with ``api_key``; no inference cost."""
        if not api_key:
            return False
        try:
            await self._make_client(api_key).models.list()
            return True
        except openai.APIError:
            return False

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "openai"
