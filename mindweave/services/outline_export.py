"""Outline export to Markdown, indented plain text or JSON.

Each format is built from an :class:`OutlineDocument` tree view:

- **markdown**: the map title as ``#``, one heading per node (``##`` for
  roots, one level deeper per generation, capped at ``######``), node
  sources under each node and a de-duplicated reference list at the end.
- **text**: the same content as an indented outline, two spaces per level.
- **json**: a versioned envelope holding the map header and the node tree.

``include_metadata`` controls the title / description / summary header;
``include_citations`` controls per-node sources and the reference list.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from typing import Any

from mindweave.models.citation import Citation
from mindweave.models.outline import ExportFormat, ExportResult, OutlineDocument, OutlineNode
from mindweave.utils.errors import ValidationError
from mindweave.utils.outline_tree import iter_depth_first

EXPORT_VERSION = "1.0"

_MEDIA_TYPES = {
    ExportFormat.MARKDOWN: ("md", "text/markdown"),
    ExportFormat.TEXT: ("txt", "text/plain"),
    ExportFormat.JSON: ("json", "application/json"),
}

_INDENT = "  "


def export_outline(
    document: OutlineDocument,
    export_format: ExportFormat | str = ExportFormat.MARKDOWN,
    include_citations: bool = True,
    include_metadata: bool = True,
) -> ExportResult:
    """Render *document* in *export_format*.

    Parameters
    ----------
    document:
        The outline to export, in tree form.
    export_format:
        ``"markdown"``, ``"text"`` or ``"json"``.
    include_citations:
        Emit node sources and the closing reference list.
    include_metadata:
        Emit the map header (title, description, summary; for JSON also
        prompt, provider, complexity and node statistics).

    Raises
    ------
    ValidationError
        Unknown *export_format*.
    """
    try:
        fmt = ExportFormat(export_format)
    except ValueError as exc:
        raise ValidationError(message=f"Unsupported export format: {export_format}") from exc

    if fmt is ExportFormat.MARKDOWN:
        content = _to_markdown(document, include_citations, include_metadata)
    elif fmt is ExportFormat.TEXT:
        content = _to_text(document, include_citations, include_metadata)
    else:
        content = _to_json(document, include_citations, include_metadata)

    extension, media_type = _MEDIA_TYPES[fmt]
    return ExportResult(
        content=content,
        filename=f"{_file_stem(document.title)}.{extension}",
        media_type=media_type,
    )


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def _to_markdown(document: OutlineDocument, include_citations: bool, include_metadata: bool) -> str:
    lines: list[str] = []

    if include_metadata:
        lines += [f"# {document.title}", ""]
        if document.description:
            lines += [document.description, ""]
        if document.summary:
            lines += ["## Summary", "", document.summary, ""]
        lines += ["---", ""]

    _markdown_nodes(document.root_nodes, 2, include_citations, lines)

    if include_citations:
        references = _unique_citations(document.root_nodes)
        if references:
            lines += ["---", "", "## References", ""]
            for citation in references:
                lines.append(f"- {_citation_label(citation, markdown=True)}")
                if citation.summary:
                    lines.append(f"{_INDENT}{citation.summary}")
            lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"


def _markdown_nodes(
    nodes: Sequence[OutlineNode], heading: int, include_citations: bool, lines: list[str]
) -> None:
    for node in sorted(nodes, key=lambda n: n.order):
        lines += [f"{'#' * min(heading, 6)} {node.title or 'Untitled'}", ""]
        if node.content and node.content != node.title:
            lines += [node.content, ""]
        if include_citations and node.citations:
            lines += ["**Sources:**", ""]
            lines += [f"- {_citation_label(c, markdown=True)}" for c in node.citations]
            lines.append("")
        _markdown_nodes(node.children, heading + 1, include_citations, lines)


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------


def _to_text(document: OutlineDocument, include_citations: bool, include_metadata: bool) -> str:
    lines: list[str] = []

    if include_metadata:
        lines += [document.title, "=" * len(document.title), ""]
        if document.description:
            lines += [document.description, ""]
        if document.summary:
            lines += ["Summary:", f"{_INDENT}{document.summary}", ""]

    _text_nodes(document.root_nodes, 0, include_citations, lines)

    if include_citations:
        references = _unique_citations(document.root_nodes)
        if references:
            lines += ["", "References:"]
            lines += [f"{_INDENT}- {_citation_label(c, markdown=False)}" for c in references]

    return "\n".join(lines).rstrip("\n") + "\n"


def _text_nodes(nodes: Sequence[OutlineNode], depth: int, include_citations: bool, lines: list[str]) -> None:
    indent = _INDENT * depth
    for node in sorted(nodes, key=lambda n: n.order):
        lines.append(f"{indent}- {node.title or 'Untitled'}")
        if node.content and node.content != node.title:
            lines += [f"{indent}{_INDENT}{line}" for line in node.content.splitlines() if line.strip()]
        if include_citations and node.citations:
            lines.append(f"{indent}{_INDENT}Sources:")
            lines += [
                f"{indent}{_INDENT * 2}- {_citation_label(c, markdown=False)}" for c in node.citations
            ]
        _text_nodes(node.children, depth + 1, include_citations, lines)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _to_json(document: OutlineDocument, include_citations: bool, include_metadata: bool) -> str:
    if include_metadata:
        header = document.model_dump(mode="json", exclude={"root_nodes"})
    else:
        header = {"id": document.id, "title": document.title}
    payload = {
        "version": EXPORT_VERSION,
        "mind_map": header,
        "nodes": [_json_node(node, include_citations) for node in sorted(document.root_nodes, key=lambda n: n.order)],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _json_node(node: OutlineNode, include_citations: bool) -> dict[str, Any]:
    data = node.model_dump(mode="json", exclude={"children", "citations", "parent_id"})
    if include_citations:
        data["citations"] = [c.model_dump(mode="json", exclude_none=True) for c in node.citations]
    data["children"] = [
        _json_node(child, include_citations) for child in sorted(node.children, key=lambda n: n.order)
    ]
    return data


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _citation_label(citation: Citation, markdown: bool) -> str:
    if citation.url:
        label = f"[{citation.title}]({citation.url})" if markdown else f"{citation.title} ({citation.url})"
    else:
        label = citation.title
    if citation.author:
        label += f" by {citation.author}"
    return label


def _unique_citations(nodes: Sequence[OutlineNode]) -> list[Citation]:
    """Every node citation in depth-first order, first occurrence of each (url, title)."""
    seen: set[tuple[str | None, str]] = set()
    unique: list[Citation] = []
    for node in iter_depth_first(nodes):
        for citation in node.citations:
            key = (citation.url, citation.title)
            if key not in seen:
                seen.add(key)
                unique.append(citation)
    return unique


def _file_stem(title: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
