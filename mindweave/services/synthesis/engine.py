"""Synthesis engine: LLM-driven outline generation and refinement.

Every operation runs the same job state machine::

    create GenerationJob (pending) -> processing -> call provider
        -> parse JSON -> validate -> write to store -> completed
                                   (any exception) -> failed

Failures are terminal: the error message is written to the job together
with ``status=failed`` and the exception propagates to the caller.  Model
output that is not JSON, or JSON that fails outline validation, raises
:class:`ModelOutputParseError` before anything is written, so a failed
``generate`` never leaves a document behind.

Outlines are persisted as a flat arena: one :class:`MindMapRecord` per
document plus one :class:`NodeRecord` per node linked by ``parent_id``.
The tree view returned to callers is rebuilt from the arena on demand.

Operations
----------
generate_outline   whole document from a prompt (plus optional source text)
expand_node        rewrite a node if the model supplies new text, and
                   append generated children below the existing ones
regenerate_branch  rewrite a node and replace its whole subtree
summarize_outline  plain-text summary stored on the document header
"""

from __future__ import annotations

import asyncio
import json
import re
import uuid
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from mindweave.config.settings import Settings
from mindweave.interfaces.key_vault import IKeyVault
from mindweave.interfaces.llm_provider import ILLMProvider
from mindweave.interfaces.record_store import GENERATION_JOBS, MIND_MAPS, NODES, IRecordStore
from mindweave.models.generation import (
    GenerationJob,
    GenerationOperation,
    GenerationResult,
    NodeUpdateResult,
    ProviderResponse,
    SummaryResult,
)
from mindweave.models.ingestion import JobStatus
from mindweave.models.outline import (
    ComplexityLevel,
    MindMapRecord,
    NodeRecord,
    OutlineDocument,
    OutlineMetadata,
    OutlineNode,
)
from mindweave.services.outline_validator import validate_outline_document, validate_outline_node
from mindweave.services.synthesis.provider_catalog import ProviderCatalog, ProviderFactory, TaskType
from mindweave.services.synthesis.templates import render_prompt
from mindweave.utils.errors import (
    ConfigurationError,
    ModelOutputParseError,
    NotFoundError,
    failure_message,
)
from mindweave.utils.logging import bind_job_context
from mindweave.utils.outline_tree import (
    build_tree_from_flat,
    count_nodes,
    find_node_by_id,
    generate_auto_layout,
    get_max_depth,
)

logger = structlog.get_logger(logger_name=__name__)

# Markdown code fences that models wrap around JSON despite instructions.
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Called once per persisted node, depth-first, with a 1-based running index.
ProgressCallback = Callable[[OutlineNode, int], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SynthesisEngine:
    """Generates and refines outline documents through an LLM provider.

    Parameters
    ----------
    store:
        Holds generation jobs, mind map headers and node records.
    key_vault:
        Resolves the API key for (user, provider).
    provider_factory:
        Builds an :class:`ILLMProvider` from a provider name and key.
    settings:
        Supplies ``default_provider``.
    catalog:
        Model and token budgets per task.  Defaults to the built-in catalog.
    """

    def __init__(
        self,
        store: IRecordStore,
        key_vault: IKeyVault,
        provider_factory: ProviderFactory,
        settings: Settings,
        catalog: ProviderCatalog | None = None,
    ) -> None:
        self._store = store
        self._key_vault = key_vault
        self._provider_factory = provider_factory
        self._settings = settings
        self._catalog = catalog or ProviderCatalog()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def generate_outline(
        self,
        prompt: str,
        workspace_id: str,
        user_id: str | None = None,
        provider: str | None = None,
        complexity: ComplexityLevel | str = ComplexityLevel.MODERATE,
        sources: Sequence[str] | None = None,
        existing_map_id: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Generate and persist a whole outline document.

        Parameters
        ----------
        prompt:
            Topic or instruction for the document.
        sources:
            Optional ingested text used as context.
        existing_map_id:
            When refining an existing document, its current structure is
            included in the prompt.  The result is stored as a new document.
        progress:
            Awaited for every node as it is written.

        Raises
        ------
        UnsupportedProviderError
            Unknown *provider*; no job is created.
        ModelOutputParseError
            Model output was not a valid outline; the job is ``failed`` and
            no document is stored.
        """
        complexity = ComplexityLevel(complexity)
        provider_name, adapter = await self._resolve_provider(provider, user_id)

        if existing_map_id is not None:
            existing = await self.get_outline(existing_map_id)
            instructions = (
                "This is a refinement of an existing mind map. Consider its current "
                "structure:\n" + _structure_string(existing.root_nodes)
            )
        else:
            instructions = "Create a comprehensive mind map from scratch."

        job = await self._start_job(
            GenerationOperation.GENERATE,
            prompt=prompt,
            provider=provider_name,
            workspace_id=workspace_id,
            user_id=user_id,
            mind_map_id=existing_map_id,
        )
        with bind_job_context(job_id=job.id, operation=job.operation.value):
            try:
                rendered = render_prompt(
                    "mindmap-reasoning",
                    {
                        "prompt": prompt,
                        "sources": _sources_block(sources),
                        "instructions": instructions,
                    },
                    complexity,
                )
                response = await self._call(
                    adapter, provider_name, TaskType.REASONING, rendered.system_prompt, rendered.user_prompt
                )
                raw = _parse_model_json(response.content)
                document = self._build_document(raw, prompt, provider_name, complexity)
                map_id, stored = await self._persist_document(document, workspace_id, progress)
                total = count_nodes(stored.root_nodes)
                await self._complete_job(
                    job.id,
                    {"map_id": map_id, "title": stored.title, "node_count": total},
                    response,
                    provider_name,
                    TaskType.REASONING,
                    mind_map_id=map_id,
                )
            except (asyncio.CancelledError, Exception) as exc:
                await self._fail_job(job.id, exc)
                raise

            logger.info("outline_generated", map_id=map_id, nodes=total, tokens=response.tokens_used)
        return GenerationResult(
            job_id=job.id,
            map_id=map_id,
            document=stored,
            tokens_used=response.tokens_used,
            provider=provider_name,
        )

    async def expand_node(
        self,
        map_id: str,
        node_id: str,
        user_id: str | None = None,
        prompt: str | None = None,
        depth: int | None = None,
        provider: str | None = None,
        complexity: ComplexityLevel | str = ComplexityLevel.MODERATE,
    ) -> NodeUpdateResult:
        """Add generated children beneath a node.

        Existing children are kept; new ones are ordered after them.  The
        node's own title and content change only when the model supplies
        new values.
        """
        return await self._refine_node(
            GenerationOperation.EXPAND,
            map_id=map_id,
            node_id=node_id,
            user_id=user_id,
            focus_prompt=prompt or "Provide comprehensive coverage of this topic",
            instructions=f"Expand with {depth or 2} levels of depth.",
            provider=provider,
            complexity=ComplexityLevel(complexity),
        )

    async def regenerate_branch(
        self,
        map_id: str,
        node_id: str,
        user_id: str | None = None,
        prompt: str | None = None,
        provider: str | None = None,
        complexity: ComplexityLevel | str = ComplexityLevel.MODERATE,
    ) -> NodeUpdateResult:
        """Rewrite a node and replace its subtree with generated children.

        When the model returns children, every existing descendant of the
        node is deleted before the new children are written.  A response
        without children leaves the subtree alone.
        """
        return await self._refine_node(
            GenerationOperation.REGENERATE,
            map_id=map_id,
            node_id=node_id,
            user_id=user_id,
            focus_prompt=prompt or "Provide a comprehensive and accurate representation of this topic",
            instructions=(
                "Regenerate this node with improved clarity and detail while "
                "maintaining the same depth level."
            ),
            provider=provider,
            complexity=ComplexityLevel(complexity),
        )

    async def summarize_outline(
        self,
        map_id: str,
        user_id: str | None = None,
        provider: str | None = None,
    ) -> SummaryResult:
        """Generate a prose summary and store it on the document header.

        Nodes are not modified.
        """
        document = await self.get_outline(map_id)
        provider_name, adapter = await self._resolve_provider(provider, user_id)

        job = await self._start_job(
            GenerationOperation.SUMMARIZE,
            prompt=f"Summarize mind map: {document.title}",
            provider=provider_name,
            user_id=user_id,
            mind_map_id=map_id,
        )
        with bind_job_context(job_id=job.id, operation=job.operation.value):
            try:
                rendered = render_prompt(
                    "map-summarization",
                    {
                        "map_title": document.title,
                        "map_structure": _structure_string(document.root_nodes) or "(empty)",
                        "summary_length": "comprehensive",
                        "summary_style": "analytical and insightful",
                    },
                )
                response = await self._call(
                    adapter,
                    provider_name,
                    TaskType.SUMMARY,
                    rendered.system_prompt,
                    rendered.user_prompt,
                    json_mode=False,
                )
                summary = response.content.strip()
                await self._store.update(MIND_MAPS, map_id, {"summary": summary})
                await self._complete_job(
                    job.id, {"summary": summary}, response, provider_name, TaskType.SUMMARY
                )
            except (asyncio.CancelledError, Exception) as exc:
                await self._fail_job(job.id, exc)
                raise

            logger.info("outline_summarized", map_id=map_id, chars=len(summary))
        return SummaryResult(
            job_id=job.id,
            map_id=map_id,
            summary=summary,
            tokens_used=response.tokens_used,
            provider=provider_name,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> GenerationJob:
        job = await self._store.get(GENERATION_JOBS, job_id)
        if job is None:
            raise NotFoundError(message=f"Generation job not found: {job_id}")
        return job

    async def get_outline(self, map_id: str) -> OutlineDocument:
        """Rebuild the tree view of a stored document."""
        header = await self._require_map(map_id)
        records = await self._store.find(NODES, mind_map_id=map_id, order_by="order")
        root_nodes = build_tree_from_flat(records)
        return OutlineDocument(
            id=header.id,
            title=header.title,
            description=header.description,
            summary=header.summary,
            prompt=header.prompt,
            provider=header.provider,
            complexity=header.complexity,
            root_nodes=root_nodes,
            metadata=OutlineMetadata(
                total_nodes=header.total_nodes,
                max_depth=header.max_depth,
                created_at=header.created_at,
                updated_at=header.updated_at,
            ),
        )

    # ------------------------------------------------------------------
    # Expand / regenerate
    # ------------------------------------------------------------------

    async def _refine_node(
        self,
        operation: GenerationOperation,
        map_id: str,
        node_id: str,
        user_id: str | None,
        focus_prompt: str,
        instructions: str,
        provider: str | None,
        complexity: ComplexityLevel,
    ) -> NodeUpdateResult:
        node = await self._store.get(NODES, node_id)
        if node is None or node.mind_map_id != map_id:
            raise NotFoundError(message=f"Node not found: {node_id}")
        provider_name, adapter = await self._resolve_provider(provider, user_id)
        existing_children = await self._store.find(NODES, parent_id=node_id, order_by="order")
        replace = operation is GenerationOperation.REGENERATE

        label = node.title or node.content[:100]
        job = await self._start_job(
            operation,
            prompt=f"{operation.value.capitalize()} node: {label}",
            provider=provider_name,
            user_id=user_id,
            mind_map_id=map_id,
            node_id=node_id,
        )
        with bind_job_context(job_id=job.id, operation=operation.value, node_id=node_id):
            try:
                rendered = render_prompt(
                    "node-regeneration" if replace else "node-expansion",
                    {
                        "node_title": node.title or "Untitled",
                        "node_content": node.content,
                        "parent_context": (
                            f"Node at level {node.level} with {len(existing_children)} existing children"
                        ),
                        "focus_prompt": focus_prompt,
                        "instructions": instructions,
                    },
                    complexity,
                )
                task = TaskType.REASONING if replace else TaskType.EXPANSION
                response = await self._call(
                    adapter, provider_name, task, rendered.system_prompt, rendered.user_prompt
                )
                raw = _parse_model_json(response.content)
                title, content = _updated_text(raw)
                raw_children = raw.get("children") or []
                if not isinstance(raw_children, list):
                    raise ModelOutputParseError(message="Model output 'children' is not a list")

                replacing = replace and bool(raw_children)
                first_order = 0 if replacing else _next_order(existing_children)
                children = _validated_children(raw_children, node_id, node.level + 1, first_order)

                removed: list[str] = []
                if replacing:
                    removed = await self._delete_descendants(node_id)
                changes: dict[str, Any] = {}
                if title:
                    changes["title"] = title
                if content:
                    changes["content"] = content
                if changes:
                    await self._store.update(NODES, node_id, changes)
                created = await self._persist_nodes(children, map_id, None)
                await self._refresh_map_metadata(map_id)
                await self._complete_job(
                    job.id,
                    {
                        "node_id": node_id,
                        "created_node_ids": created,
                        "removed_node_ids": removed,
                    },
                    response,
                    provider_name,
                    task,
                )
            except (asyncio.CancelledError, Exception) as exc:
                await self._fail_job(job.id, exc)
                raise

            logger.info(
                "node_refined",
                map_id=map_id,
                created=len(created),
                removed=len(removed),
                tokens=response.tokens_used,
            )

        document = await self.get_outline(map_id)
        updated = find_node_by_id(document.root_nodes, node_id)
        assert updated is not None
        return NodeUpdateResult(
            job_id=job.id,
            map_id=map_id,
            node=updated,
            created_node_ids=created,
            removed_node_ids=removed,
            tokens_used=response.tokens_used,
            provider=provider_name,
        )

    async def _delete_descendants(self, node_id: str) -> list[str]:
        removed: list[str] = []
        pending = [node_id]
        while pending:
            parent_id = pending.pop()
            for child in await self._store.find(NODES, parent_id=parent_id):
                pending.append(child.id)
                removed.append(child.id)
        for child_id in removed:
            await self._store.delete(NODES, child_id)
        return removed

    # ------------------------------------------------------------------
    # Provider call
    # ------------------------------------------------------------------

    async def _resolve_provider(self, provider: str | None, user_id: str | None) -> tuple[str, ILLMProvider]:
        name = provider or self._settings.default_provider
        self._catalog.get(name)
        api_key = await self._key_vault.get_api_key(user_id, name)
        if not api_key:
            raise ConfigurationError(
                message=f"No API key configured for provider {name}",
                provider_name=name,
            )
        return name, self._provider_factory(name, api_key)

    async def _call(
        self,
        adapter: ILLMProvider,
        provider: str,
        task: TaskType,
        system_prompt: str,
        user_prompt: str,
        json_mode: bool = True,
    ) -> ProviderResponse:
        options = self._catalog.options_for(provider, task, system_prompt=system_prompt, json_mode=json_mode)
        logger.debug(
            "provider_call",
            provider=provider,
            task=task.value,
            model=options.model,
            prompt_tokens=adapter.estimate_tokens(system_prompt + user_prompt),
        )
        return await adapter.generate_response(user_prompt, options)

    # ------------------------------------------------------------------
    # Parsing and normalization
    # ------------------------------------------------------------------

    def _build_document(
        self,
        raw: dict[str, Any],
        prompt: str,
        provider: str,
        complexity: ComplexityLevel,
    ) -> OutlineDocument:
        """Normalize a parsed model response into a validated document."""
        raw_nodes = raw.get("root_nodes")
        if raw_nodes is None:
            raw_nodes = raw.get("nodes", [])
        if not isinstance(raw_nodes, list):
            raise ModelOutputParseError(message="Model output 'root_nodes' is not a list")

        without_visual: set[str] = set()
        root_nodes = _normalize_nodes(
            raw_nodes, parent_id=None, level=0, first_order=0, without_visual=without_visual
        )
        data = {
            "title": raw.get("title"),
            "description": raw.get("description"),
            "prompt": prompt,
            "provider": provider,
            "complexity": complexity,
            "root_nodes": root_nodes,
        }
        # Counts the model reports are checked against the tree; absent ones
        # are filled in so they cannot drift.
        count, depth = _raw_stats(root_nodes)
        reported = raw.get("metadata") if isinstance(raw.get("metadata"), dict) else {}
        data["metadata"] = {
            "total_nodes": reported.get("total_nodes", count),
            "max_depth": reported.get("max_depth", depth),
        }

        result = validate_outline_document(data)
        if not result.valid or result.document is None:
            raise ModelOutputParseError(
                message=f"Invalid mind map structure: {'; '.join(result.errors)}",
                provider_name=provider,
            )
        for warning in result.warnings:
            logger.warning("outline_validation_warning", warning=warning)

        document = result.document
        laid_out = _apply_layout(document.root_nodes, without_visual)
        return document.model_copy(update={"root_nodes": laid_out})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _persist_document(
        self,
        document: OutlineDocument,
        workspace_id: str,
        progress: ProgressCallback | None,
    ) -> tuple[str, OutlineDocument]:
        map_id = str(uuid.uuid4())
        header = MindMapRecord(
            id=map_id,
            workspace_id=workspace_id,
            title=document.title,
            description=document.description,
            summary=document.summary,
            prompt=document.prompt,
            provider=document.provider,
            complexity=document.complexity,
            total_nodes=count_nodes(document.root_nodes),
            max_depth=get_max_depth(document.root_nodes),
        )
        await self._store.create(MIND_MAPS, header)
        await self._persist_nodes(document.root_nodes, map_id, progress)
        return map_id, await self.get_outline(map_id)

    async def _persist_nodes(
        self,
        nodes: Sequence[OutlineNode],
        map_id: str,
        progress: ProgressCallback | None,
    ) -> list[str]:
        """Write *nodes* and their subtrees depth-first; return the ids written."""
        written: list[str] = []

        async def _write(level_nodes: Sequence[OutlineNode]) -> None:
            for node in level_nodes:
                assert node.id is not None
                await self._store.create(
                    NODES,
                    NodeRecord(
                        id=node.id,
                        mind_map_id=map_id,
                        parent_id=node.parent_id,
                        title=node.title,
                        content=node.content,
                        level=node.level,
                        order=node.order,
                        visual=node.visual,
                        citations=node.citations,
                    ),
                )
                written.append(node.id)
                if progress is not None:
                    await progress(node, len(written))
                await _write(node.children)

        await _write(nodes)
        return written

    async def _refresh_map_metadata(self, map_id: str) -> None:
        records = await self._store.find(NODES, mind_map_id=map_id, order_by="order")
        tree = build_tree_from_flat(records)
        await self._store.update(
            MIND_MAPS,
            map_id,
            {"total_nodes": count_nodes(tree), "max_depth": get_max_depth(tree)},
        )

    async def _require_map(self, map_id: str) -> MindMapRecord:
        header = await self._store.get(MIND_MAPS, map_id)
        if header is None:
            raise NotFoundError(message=f"Mind map not found: {map_id}")
        return header

    # ------------------------------------------------------------------
    # Job bookkeeping
    # ------------------------------------------------------------------

    async def _start_job(self, operation: GenerationOperation, **fields: Any) -> GenerationJob:
        job = GenerationJob(id=str(uuid.uuid4()), operation=operation, **fields)
        await self._store.create(GENERATION_JOBS, job)
        return await self._store.update(
            GENERATION_JOBS,
            job.id,
            {"status": JobStatus.PROCESSING, "started_at": _utcnow()},
        )

    async def _complete_job(
        self,
        job_id: str,
        result: dict[str, Any],
        response: ProviderResponse,
        provider: str,
        task: TaskType,
        **extra: Any,
    ) -> None:
        """Mark a job completed; the result also records the model and its estimated cost."""
        estimate = self._catalog.estimate_cost(provider, task, response.tokens_used)
        await self._store.update(
            GENERATION_JOBS,
            job_id,
            {
                "status": JobStatus.COMPLETED,
                "result": {**result, "model": response.model, "estimated_cost": estimate.estimated_cost},
                "tokens_used": response.tokens_used,
                "completed_at": _utcnow(),
                **extra,
            },
        )

    async def _fail_job(self, job_id: str, exc: BaseException) -> None:
        error = failure_message(exc)
        logger.error("generation_job_failed", error=error, error_type=type(exc).__name__)
        await self._store.update(
            GENERATION_JOBS,
            job_id,
            {
                "status": JobStatus.FAILED,
                "error": error,
                "completed_at": _utcnow(),
            },
        )


# ---------------------------------------------------------------------------
# Module helpers
# ---------------------------------------------------------------------------


def _parse_model_json(content: str) -> dict[str, Any]:
    """Extract a JSON object from model output.

    Strips markdown fences, then falls back to the outermost brace pair when
    the object is wrapped in prose.  camelCase keys are converted to
    snake_case.
    """
    text = content.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()
    if not text.startswith("{"):
        brace_start = text.find("{")
        brace_end = text.rfind("}")
        if brace_start != -1 and brace_end > brace_start:
            text = text[brace_start : brace_end + 1]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ModelOutputParseError(message=f"Failed to parse model response as JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ModelOutputParseError(message="Model response is not a JSON object")
    return _snake_keys(parsed)


def _snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            _CAMEL_BOUNDARY_RE.sub("_", key).lower() if isinstance(key, str) else key: _snake_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_snake_keys(item) for item in value]
    return value


def _normalize_nodes(
    raw_nodes: list[Any],
    parent_id: str | None,
    level: int,
    first_order: int,
    without_visual: set[str],
) -> list[Any]:
    """Assign ids, parent links and levels by position.

    Ids from the model are discarded.  ``order`` defaults to the sibling
    index; nodes without ``visual`` are recorded in *without_visual* so
    they can be auto-laid-out after validation.  Non-dict entries are left
    for the validator to reject.
    """
    normalized: list[Any] = []
    for index, raw in enumerate(raw_nodes):
        if not isinstance(raw, dict):
            normalized.append(raw)
            continue
        node = dict(raw)
        node_id = str(uuid.uuid4())
        node["id"] = node_id
        node["parent_id"] = parent_id
        node["level"] = level
        if not isinstance(node.get("order"), int) or node["order"] < 0:
            node["order"] = first_order + index
        else:
            node["order"] = first_order + node["order"]
        if not isinstance(node.get("visual"), dict):
            node.pop("visual", None)
            without_visual.add(node_id)
        children = node.get("children") or []
        if isinstance(children, list):
            node["children"] = _normalize_nodes(children, node_id, level + 1, 0, without_visual)
        normalized.append(node)
    return normalized


def _raw_stats(nodes: list[Any], level: int = 0) -> tuple[int, int]:
    """Node count and deepest level of normalized, not yet validated nodes."""
    count, depth = 0, 0
    for node in nodes:
        if not isinstance(node, dict):
            continue
        child_count, child_depth = _raw_stats(node.get("children") or [], level + 1)
        count += 1 + child_count
        depth = max(depth, level, child_depth)
    return count, depth


def _validated_children(
    raw_children: list[Any],
    parent_id: str,
    level: int,
    first_order: int,
) -> list[OutlineNode]:
    without_visual: set[str] = set()
    normalized = _normalize_nodes(raw_children, parent_id, level, first_order, without_visual)
    children: list[OutlineNode] = []
    errors: list[str] = []
    for index, raw in enumerate(normalized):
        result = validate_outline_node(raw)
        if not result.valid or result.node is None:
            errors.extend(f"children.{index}: {error}" for error in result.errors)
            continue
        for warning in result.warnings:
            logger.warning("outline_validation_warning", warning=warning)
        children.append(result.node)
    if errors:
        raise ModelOutputParseError(message=f"Invalid node structure: {'; '.join(errors)}")
    return _apply_layout(children, without_visual)


def _apply_layout(nodes: list[OutlineNode], without_visual: set[str]) -> list[OutlineNode]:
    """Auto-layout, keeping the model's own visual for nodes that had one."""
    if not without_visual:
        return nodes
    laid_out = generate_auto_layout(nodes)

    def _merge(original: Sequence[OutlineNode], positioned: Sequence[OutlineNode]) -> list[OutlineNode]:
        merged = []
        for before, after in zip(original, positioned):
            visual = after.visual if before.id in without_visual else before.visual
            merged.append(
                before.model_copy(
                    update={"visual": visual, "children": _merge(before.children, after.children)}
                )
            )
        return merged

    return _merge(nodes, laid_out)


def _updated_text(raw: dict[str, Any]) -> tuple[str | None, str | None]:
    title = raw.get("title")
    content = raw.get("content")
    if title is not None and not isinstance(title, str):
        raise ModelOutputParseError(message="Model output 'title' is not a string")
    if content is not None and not isinstance(content, str):
        raise ModelOutputParseError(message="Model output 'content' is not a string")
    return (title or "").strip() or None, (content or "").strip() or None


def _next_order(siblings: Sequence[NodeRecord]) -> int:
    return max((sibling.order for sibling in siblings), default=-1) + 1


def _sources_block(sources: Sequence[str] | None) -> str:
    texts = [text.strip() for text in sources or [] if text and text.strip()]
    if not texts:
        return ""
    return "Use the following source material:\n\n" + "\n\n".join(texts)


def _structure_string(nodes: Sequence[OutlineNode], level: int = 0) -> str:
    """Indented outline, two spaces per level, content cut at 100 chars."""
    lines: list[str] = []
    indent = "  " * level
    for node in nodes:
        lines.append(f"{indent}- {node.title or 'Untitled'}: {node.content[:100]}...")
        child_lines = _structure_string(node.children, level + 1)
        if child_lines:
            lines.append(child_lines)
    return "\n".join(lines)
