"""Prompt templates for the synthesis engine.

Four named templates, one per engine operation:

    mindmap-reasoning    generate a whole outline document
    node-expansion       add children beneath an existing node
    node-regeneration    rewrite a node and replace its children
    map-summarization    summarize a document as prose

User prompts use ``{placeholder}`` substitution.  Placeholders without a
value render as an empty string (or the per-placeholder default below);
``{complexity}`` and ``{complexity_instruction}`` always come from the
requested :class:`ComplexityLevel`.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from mindweave.models.outline import ComplexityLevel
from mindweave.utils.errors import ValidationError

# Doubled braces are literal; "{name}" is a placeholder.
_TOKEN_RE = re.compile(r"\{\{|\}\}|\{([a-z_]+)\}")

_DEFAULTS = {
    "focus_areas": "all areas",
    "summary_length": "detailed",
    "summary_style": "analytical",
}

_COMPLEXITY_INSTRUCTIONS = {
    ComplexityLevel.SIMPLE: (
        "COMPLEXITY: Simple - Focus on the main concepts with minimal detail. "
        "Create 2-4 top-level branches with 2-3 sub-nodes each."
    ),
    ComplexityLevel.MODERATE: (
        "COMPLEXITY: Moderate - Provide balanced detail with good coverage. "
        "Create 3-6 top-level branches with 3-5 sub-nodes each."
    ),
    ComplexityLevel.COMPLEX: (
        "COMPLEXITY: Complex - Include comprehensive detail and explore connections "
        "deeply. Create 4-8 top-level branches with 4-6 sub-nodes each, including "
        "cross-connections where relevant."
    ),
    ComplexityLevel.DETAILED: (
        "COMPLEXITY: Detailed - Provide a very thorough breakdown. Create 6-10 "
        "top-level branches with 5-8 sub-nodes each. Focus on granularity and "
        "completeness."
    ),
    ComplexityLevel.EXPERT: (
        "COMPLEXITY: Expert - Provide professional-grade analysis with extensive "
        "depth. Create 8-12 top-level branches with multiple sub-levels. Include "
        "sophisticated concepts, terminology, and cross-references."
    ),
}

_NODE_SCHEMA = (
    "{\n"
    '  "title": "Node title",\n'
    '  "content": "One or two sentences explaining the node",\n'
    '  "citations": [{"title": "Source title", "url": "https://..."}],\n'
    '  "children": [ ...nodes of the same shape... ]\n'
    "}"
)


@dataclass(frozen=True)
class PromptTemplate:
    name: str
    description: str
    system_prompt: str
    user_prompt_template: str
    required_variables: tuple[str, ...] = ()


@dataclass(frozen=True)
class RenderedPrompt:
    system_prompt: str
    user_prompt: str

    @property
    def estimated_tokens(self) -> int:
        return math.ceil(len(self.system_prompt) / 4) + math.ceil(len(self.user_prompt) / 4)


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    template.name: template
    for template in (
        PromptTemplate(
            name="mindmap-reasoning",
            description="Generate a complete mind map structure",
            system_prompt=(
                "You are an expert mind map generator. Create structured, hierarchical "
                "mind maps from prompts and source material.\n\n"
                "1. STRUCTURE: build a tree with clear parent-child relationships.\n"
                "2. CONTENT: use concise titles and informative content for every node.\n"
                "3. CITATIONS: cite the source material when it is provided.\n"
                "4. COMPLEXITY: match the requested level of detail.\n\n"
                "Always respond with a single valid JSON object."
            ),
            user_prompt_template=(
                'Generate a mind map for the following prompt: "{prompt}"\n\n'
                "{sources}\n\n"
                "{complexity_instruction}\n\n"
                "{instructions}\n\n"
                "Return the mind map as a JSON object with this structure:\n"
                "{{\n"
                '  "title": "Main topic title",\n'
                '  "description": "Optional brief description",\n'
                '  "complexity": "{complexity}",\n'
                '  "root_nodes": [ ...nodes... ]\n'
                "}}\n\n"
                "where every node looks like:\n" + _NODE_SCHEMA.replace("{", "{{").replace("}", "}}")
            ),
            required_variables=("prompt",),
        ),
        PromptTemplate(
            name="node-expansion",
            description="Expand an existing node with additional detail",
            system_prompt=(
                "You are an expert at expanding mind map nodes with relevant, detailed "
                "content. Create logical sub-nodes that break the topic down and stay "
                "clearly related to the parent node.\n\n"
                "Always respond with a single valid JSON object."
            ),
            user_prompt_template=(
                "Expand the following mind map node.\n\n"
                "Current node: {node_title}\n"
                "Current content: {node_content}\n"
                "Context: {parent_context}\n\n"
                "Focus on: {focus_prompt}\n"
                "Complexity: {complexity}\n"
                "Instructions: {instructions}\n\n"
                "Generate 3-7 child nodes that expand this topic meaningfully. "
                "Return JSON of the form:\n"
                "{{\n"
                '  "title": "Updated node title (optional)",\n'
                '  "content": "Updated node content (optional)",\n'
                '  "children": [ ...nodes... ]\n'
                "}}"
            ),
            required_variables=("node_title", "node_content"),
        ),
        PromptTemplate(
            name="node-regeneration",
            description="Rewrite a node and replace its subtree",
            system_prompt=(
                "You are an expert at regenerating mind map nodes with improved clarity, "
                "accuracy and completeness while preserving the node's core meaning and "
                "its place in the overall structure.\n\n"
                "Always respond with a single valid JSON object."
            ),
            user_prompt_template=(
                "Regenerate this mind map node with improved content.\n\n"
                "Current node:\n"
                "- Title: {node_title}\n"
                "- Content: {node_content}\n"
                "- Context: {parent_context}\n\n"
                "{focus_prompt}\n\n"
                "{complexity_instruction}\n\n"
                "{instructions}\n\n"
                "Return the regenerated node as JSON:\n"
                "{{\n"
                '  "title": "Improved title",\n'
                '  "content": "Improved content",\n'
                '  "children": [ ...nodes... ]\n'
                "}}"
            ),
            required_variables=("node_title", "node_content"),
        ),
        PromptTemplate(
            name="map-summarization",
            description="Summarize a whole mind map",
            system_prompt=(
                "You are an expert at analysing and summarizing hierarchical information. "
                "Capture the core themes, keep the structure visible in the summary and "
                "point out important connections between branches.\n\n"
                "Respond with clear, well-structured plain text."
            ),
            user_prompt_template=(
                "Create a summary of the following mind map.\n\n"
                "Title: {map_title}\n"
                "Structure:\n{map_structure}\n\n"
                "Focus areas: {focus_areas}\n"
                "Length: {summary_length}\n"
                "Style: {summary_style}"
            ),
            required_variables=("map_title", "map_structure"),
        ),
    )
}


def get_template(name: str) -> PromptTemplate:
    try:
        return PROMPT_TEMPLATES[name]
    except KeyError:
        raise ValidationError(message=f"Unknown prompt template: {name}") from None


def complexity_instruction(complexity: ComplexityLevel) -> str:
    return _COMPLEXITY_INSTRUCTIONS[ComplexityLevel(complexity)]


def render_prompt(
    name: str,
    variables: dict[str, str | None],
    complexity: ComplexityLevel = ComplexityLevel.MODERATE,
) -> RenderedPrompt:
    """Fill template *name* with *variables*.

    Raises
    ------
    ValidationError
        Unknown template, or a required variable is missing or blank.
    """
    template = get_template(name)
    missing = [key for key in template.required_variables if not (variables.get(key) or "").strip()]
    if missing:
        raise ValidationError(
            message=f"Missing prompt variables for {name}: {', '.join(missing)}",
            errors=[f"{key}: required" for key in missing],
        )

    complexity = ComplexityLevel(complexity)
    values = {**_DEFAULTS, **{key: value for key, value in variables.items() if value}}
    values["complexity"] = complexity.value
    values["complexity_instruction"] = complexity_instruction(complexity)

    def _substitute(match: re.Match[str]) -> str:
        if match.group(1) is None:
            return match.group(0)[0]
        return values.get(match.group(1), "")

    # Single pass, so braces inside substituted values are left alone.
    user_prompt = _TOKEN_RE.sub(_substitute, template.user_prompt_template)
    return RenderedPrompt(system_prompt=template.system_prompt, user_prompt=user_prompt)
