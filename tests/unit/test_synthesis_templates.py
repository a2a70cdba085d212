"""Unit tests for prompt templates and the provider catalog."""

from __future__ import annotations

import pytest

from mindweave.models.outline import ComplexityLevel
from mindweave.providers.llm.anthropic_provider import AnthropicLLMProvider
from mindweave.providers.llm.openai_provider import OpenAILLMProvider
from mindweave.services.synthesis.provider_catalog import (
    ProviderCatalog,
    TaskType,
    build_provider_factory,
)
from mindweave.services.synthesis.templates import (
    PROMPT_TEMPLATES,
    complexity_instruction,
    get_template,
    render_prompt,
)
from mindweave.utils.errors import ConfigurationError, UnsupportedProviderError, ValidationError
from tests.conftest import make_settings

# ======================================================================
# Templates
# ======================================================================


class TestPromptTemplates:
    def test_all_operations_have_templates(self) -> None:
        assert set(PROMPT_TEMPLATES) == {
            "mindmap-reasoning",
            "node-expansion",
            "node-regeneration",
            "map-summarization",
        }

    def test_unknown_template(self) -> None:
        with pytest.raises(ValidationError, match="Unknown prompt template"):
            get_template("nope")

    def test_render_reasoning(self) -> None:
        rendered = render_prompt(
            "mindmap-reasoning",
            {"prompt": "History of jazz", "sources": "", "instructions": "From scratch."},
            ComplexityLevel.SIMPLE,
        )

        assert '"History of jazz"' in rendered.user_prompt
        assert "2-4 top-level branches" in rendered.user_prompt
        assert '"complexity": "simple"' in rendered.user_prompt
        assert "From scratch." in rendered.user_prompt
        assert '"root_nodes"' in rendered.user_prompt
        assert "{prompt}" not in rendered.user_prompt
        assert rendered.system_prompt == PROMPT_TEMPLATES["mindmap-reasoning"].system_prompt

    def test_json_braces_render_single(self) -> None:
        rendered = render_prompt("node-expansion", {"node_title": "A", "node_content": "B"})

        assert "{{" not in rendered.user_prompt
        assert "{\n" in rendered.user_prompt

    def test_braces_in_values_left_alone(self) -> None:
        rendered = render_prompt("mindmap-reasoning", {"prompt": "Explain {complexity} and {{x}}"})

        assert "Explain {complexity} and {{x}}" in rendered.user_prompt

    def test_missing_required_variables(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            render_prompt("node-expansion", {"node_title": "A", "node_content": "  "})

        assert "node_content" in exc_info.value.message
        assert exc_info.value.errors == ["node_content: required"]

    def test_summarization_defaults(self) -> None:
        rendered = render_prompt("map-summarization", {"map_title": "Jazz", "map_structure": "- Origins"})

        assert "Focus areas: all areas" in rendered.user_prompt
        assert "Length: detailed" in rendered.user_prompt
        assert "Style: analytical" in rendered.user_prompt

    def test_every_complexity_has_instruction(self) -> None:
        for level in ComplexityLevel:
            assert complexity_instruction(level).startswith("COMPLEXITY:")

    def test_estimated_tokens(self) -> None:
        rendered = render_prompt("map-summarization", {"map_title": "Jazz", "map_structure": "- Origins"})

        assert rendered.estimated_tokens > 0


# ======================================================================
# Provider catalog
# ======================================================================


class TestProviderCatalog:
    def test_defaults(self) -> None:
        catalog = ProviderCatalog()

        assert catalog.get("openai").default_model == "gpt-4o-mini"
        assert "claude-3-5-sonnet-latest" in catalog.get("anthropic").models
        assert catalog.get("openai").max_tokens[TaskType.REASONING] == 4000
        assert catalog.get("openai").max_tokens[TaskType.EXPANSION] == 2000
        assert catalog.get("anthropic").max_tokens[TaskType.SUMMARY] == 1000

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnsupportedProviderError, match="Unsupported provider: mistral"):
            ProviderCatalog().get("mistral")

    def test_config_overrides(self) -> None:
        catalog = ProviderCatalog(
            {
                "llm": {
                    "temperature": 0.2,
                    "max_tokens": {"reasoning": 1234},
                    "providers": {"openai": {"default_model": "gpt-4o"}},
                }
            }
        )

        options = catalog.options_for("openai", TaskType.REASONING, system_prompt="sys")
        assert options.model == "gpt-4o"
        assert options.max_tokens == 1234
        assert options.temperature == 0.2
        assert options.json_mode is True
        assert options.system_prompt == "sys"

    def test_default_model_must_be_listed(self) -> None:
        with pytest.raises(ConfigurationError, match="gpt-5-preview"):
            ProviderCatalog({"llm": {"providers": {"openai": {"default_model": "gpt-5-preview"}}}})

    def test_custom_model_list(self) -> None:
        catalog = ProviderCatalog(
            {"llm": {"providers": {"openai": {"default_model": "local-model", "models": ["local-model"]}}}}
        )

        assert catalog.options_for("openai", TaskType.EXPANSION).model == "local-model"

    def test_summary_uses_summary_temperature(self) -> None:
        options = ProviderCatalog().options_for("anthropic", TaskType.SUMMARY, json_mode=False)

        assert options.temperature == 0.5
        assert options.max_tokens == 1000
        assert options.json_mode is False

    def test_estimate_cost(self) -> None:
        estimate = ProviderCatalog().estimate_cost("openai", TaskType.REASONING, 2000)

        assert estimate.estimated_cost == pytest.approx(0.001)
        assert estimate.currency == "USD"


class TestProviderFactory:
    def test_builds_adapters_by_name(self) -> None:
        factory = build_provider_factory(make_settings())

        assert isinstance(factory("openai", "sk-user"), OpenAILLMProvider)
        assert isinstance(factory("anthropic", None), AnthropicLLMProvider)

    def test_unknown_name_raises(self) -> None:
        factory = build_provider_factory(make_settings())

        with pytest.raises(UnsupportedProviderError):
            factory("mistral", "key")
