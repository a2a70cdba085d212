"""Anthropic Claude LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.
Unlike OpenAI, the system prompt is a top-level ``system`` argument rather
than a message.  The Messages API has no JSON response mode, so
``json_mode`` is expressed as an extra instruction in the system prompt.
"""

from __future__ import annotations

import anthropic
import structlog

from mindweave.config.settings import Settings
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.models.generation import GenerationOptions, ProviderResponse
from mindweave.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-3-5-sonnet-latest"
_JSON_INSTRUCTION = "Respond with a single JSON object and nothing else."


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API."""

    def __init__(
        self,
        settings: Settings,
        api_key: str | None = None,
        default_model: str | None = None,
    ) -> None:
        self._settings = settings
        self._api_key = api_key or settings.anthropic_api_key
        self._client = self._make_client(self._api_key)
        self._default_model = default_model or _DEFAULT_MODEL

    def _make_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(
            api_key=api_key or "missing",
            timeout=self._settings.llm_timeout_seconds,
        )

    async def generate_response(
        self,
        user_prompt: str,
        options: GenerationOptions,
    ) -> ProviderResponse:
        """Run one Messages API call and join the returned text blocks."""
        model = options.model or self._default_model
        system_prompt = options.system_prompt
        if options.json_mode:
            system_prompt = f"{system_prompt}\n\n{_JSON_INSTRUCTION}".strip()

        request: dict = {
            "model": model,
            "max_tokens": options.max_tokens,
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": options.temperature,
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self._client.messages.create(**request)
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info(
            "anthropic_completion",
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return ProviderResponse(
            content="\n".join(text_blocks),
            tokens_used=input_tokens + output_tokens,
            provider=self.get_provider_name(),
            model=model,
        )

    async def validate_key(self, api_key: str) -> bool:
        """Try a minimal completion with ``api_key``."""
        if not api_key:
            return False
        try:
            await self._make_client(api_key).messages.create(
                model=self._default_model,
                max_tokens=10,
                messages=[{"role": "user", "content": "hi"}],
            )
            return True
        except anthropic.APIError:
            return False

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
