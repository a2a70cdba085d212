"""Abstract base class for LLM service providers.

Defines the contract every large-language-model backend implements so the
synthesis engine can swap providers by name.  Concrete adapters live in
``mindweave/providers/llm/``.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

from mindweave.models.generation import GenerationOptions, ProviderResponse


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
class ILLMProvider(ABC):
    """Contract for LLM services used by the synthesis engine."""

    @abstractmethod
    async def generate_response(
        self,
        user_prompt: str,
        options: GenerationOptions,
    ) -> ProviderResponse:
        """Generate a response for ``user_prompt``.

        Parameters
        ----------
        user_prompt:
            The user-facing prompt containing the actual request or data.
        options:
            System prompt, model override, token budget, temperature and
            whether the backend should be asked for a JSON object.

        Returns
        -------
        ProviderResponse
            Response text, total tokens used, provider name and model.

        Raises
        ------
        mindweave.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def validate_key(self, api_key: str) -> bool:
        """Return ``True`` if ``api_key`` is accepted by the backend.

        Never raises; network or auth failures return ``False``.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate (four characters per token)."""
        return math.ceil(len(text) / 4)
