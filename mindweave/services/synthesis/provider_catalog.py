"""LLM provider catalog and adapter factory.

The catalog answers "which model, how many tokens, what temperature" for
each (provider, task) pair.  Defaults below are overlaid with the ``llm``
section of ``config/config.yaml`` when a config dict is supplied; a
``default_model`` outside the provider's ``models`` list is a
:class:`ConfigurationError`.  Completed jobs record the cost estimate from
:meth:`ProviderCatalog.estimate_cost`.

The factory turns a provider name plus an optional per-user API key into a
ready :class:`ILLMProvider`.  Unknown names raise
:class:`UnsupportedProviderError`; there is no silent fallback to another
provider.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mindweave.config.settings import Settings
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.models.generation import GenerationOptions
from mindweave.providers.llm.anthropic_provider import AnthropicLLMProvider
from mindweave.providers.llm.openai_provider import OpenAILLMProvider
from mindweave.utils.errors import ConfigurationError, UnsupportedProviderError


class TaskType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    REASONING = "reasoning"
    EXPANSION = "expansion"
    SUMMARY = "summary"


_DEFAULT_MAX_TOKENS = {
    TaskType.REASONING: 4000,
    TaskType.EXPANSION: 2000,
    TaskType.SUMMARY: 1000,
}

# USD per 1K tokens, rough list prices used only for estimates.
_PRICING = {
    "openai": {TaskType.REASONING: 0.0005, TaskType.EXPANSION: 0.0004, TaskType.SUMMARY: 0.0003},
    "anthropic": {TaskType.REASONING: 0.001, TaskType.EXPANSION: 0.0009, TaskType.SUMMARY: 0.0008},
}


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    default_model: str
    models: tuple[str, ...]
    max_tokens: dict[TaskType, int] = field(default_factory=lambda: dict(_DEFAULT_MAX_TOKENS))
    temperature: float = 0.7
    summary_temperature: float = 0.5


@dataclass(frozen=True)
class CostEstimate:
    provider: str
    task: TaskType
    tokens: int
    estimated_cost: float
    currency: str = "USD"


_DEFAULT_PROVIDERS = {
    "openai": ProviderConfig(
        name="openai",
        default_model="gpt-4o-mini",
        models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo"),
    ),
    "anthropic": ProviderConfig(
        name="anthropic",
        default_model="claude-3-5-sonnet-latest",
        models=("claude-3-5-sonnet-latest", "claude-3-5-haiku-latest", "claude-3-opus-latest"),
    ),
}


class ProviderCatalog:
    """Per-provider model and budget lookup.

    Parameters
    ----------
    config:
        Resolved application config; only its ``llm`` section is read.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        llm = (config or {}).get("llm", {})
        max_tokens = {
            task: int(llm.get("max_tokens", {}).get(task.value, default))
            for task, default in _DEFAULT_MAX_TOKENS.items()
        }
        temperature = float(llm.get("temperature", 0.7))
        summary_temperature = float(llm.get("summary_temperature", 0.5))

        self._providers: dict[str, ProviderConfig] = {}
        for name, base in _DEFAULT_PROVIDERS.items():
            overrides = llm.get("providers", {}).get(name, {})
            provider_config = ProviderConfig(
                name=name,
                default_model=overrides.get("default_model", base.default_model),
                models=tuple(overrides.get("models", base.models)),
                max_tokens=max_tokens,
                temperature=temperature,
                summary_temperature=summary_temperature,
            )
            if provider_config.default_model not in provider_config.models:
                raise ConfigurationError(
                    message=f"Default model {provider_config.default_model!r} is not a configured {name} model",
                    provider_name=name,
                )
            self._providers[name] = provider_config

    def get(self, provider: str) -> ProviderConfig:
        try:
            return self._providers[provider]
        except KeyError:
            raise UnsupportedProviderError(message=f"Unsupported provider: {provider}") from None

    def options_for(
        self,
        provider: str,
        task: TaskType,
        system_prompt: str = "",
        json_mode: bool = True,
    ) -> GenerationOptions:
        """Build :class:`GenerationOptions` for one call.

        Summaries use ``summary_temperature``; every other task uses
        ``temperature``.
        """
        config = self.get(provider)
        return GenerationOptions(
            system_prompt=system_prompt,
            model=config.default_model,
            max_tokens=config.max_tokens[task],
            temperature=config.summary_temperature if task is TaskType.SUMMARY else config.temperature,
            json_mode=json_mode,
        )

    def estimate_cost(self, provider: str, task: TaskType, tokens: int) -> CostEstimate:
        self.get(provider)
        rate = _PRICING.get(provider, {}).get(task, 0.0)
        return CostEstimate(
            provider=provider,
            task=task,
            tokens=tokens,
            estimated_cost=round(tokens / 1000 * rate, 6),
        )


# (provider name, api key or None) -> adapter
ProviderFactory = Callable[[str, str | None], ILLMProvider]


def build_provider_factory(settings: Settings, catalog: ProviderCatalog | None = None) -> ProviderFactory:
    """Return a factory creating adapters bound to a per-call API key."""
    catalog = catalog or ProviderCatalog()

    def _factory(provider: str, api_key: str | None = None) -> ILLMProvider:
        config = catalog.get(provider)
        if provider == "openai":
            return OpenAILLMProvider(settings=settings, api_key=api_key, default_model=config.default_model)
        if provider == "anthropic":
            return AnthropicLLMProvider(
                settings=settings, api_key=api_key, default_model=config.default_model
            )
        raise UnsupportedProviderError(message=f"Unsupported provider: {provider}")

    return _factory
