"""Standalone CLI for ingesting sources and building mind maps.

Usage::

    mindweave ingest text --file notes.txt --title "Meeting notes"
    mindweave ingest youtube --url https://www.youtube.com/watch?v=dQw4w9WgXcQ
    mindweave ingest pdf --file paper.pdf
    mindweave ingest web --url https://example.com/article
    mindweave ingest websearch --query "quantum error correction" --max-results 5

    mindweave generate --prompt "History of jazz" --complexity detailed
    mindweave generate --source-job <ingestion job id> --output map.json
    mindweave expand --map-id <id> --node-id <id> --prompt "More on bebop"
    mindweave summarize --map-id <id>
    mindweave show --map-id <id>
    mindweave show --map-id <id> --format markdown --output map.md

The CLI always runs ingestion inline and persists to SQLite
(``STORE_DB_PATH``) so that ids printed by one command work in the next.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from mindweave.config.settings import Settings
from mindweave.models.ingestion import JobStatus, SourceType
from mindweave.models.outline import ComplexityLevel, ExportFormat
from mindweave.services.outline_export import export_outline
from mindweave.utils.errors import MindweaveError
from mindweave.utils.outline_tree import count_nodes, serialize_outline

_WORKSPACE_DEFAULT = "cli"
_USER_DEFAULT = "cli"


@asynccontextmanager
async def _services(app_settings: Settings) -> AsyncIterator[dict[str, Any]]:
    """Build the same component graph as the API and tear it down afterwards."""
    from mindweave.main import _build_all

    components = _build_all(app_settings)
    await components["store"].initialize()
    try:
        yield components
    finally:
        await components["store"].close()
        await components["http_client"].aclose()


def _cli_settings() -> Settings:
    return Settings().model_copy(update={"scheduler_backend": "inline", "store_backend": "sqlite"})


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _ingest_payload(args: argparse.Namespace) -> dict[str, Any]:
    kind = SourceType(args.source_type)
    if kind is SourceType.TEXT:
        text = Path(args.file).read_text(encoding="utf-8") if args.file else args.text
        return {"text": text or "", "title": args.title}
    if kind is SourceType.PDF:
        if args.file:
            path = Path(args.file)
            return {"filename": path.name, "file_bytes": path.read_bytes()}
        return {"filename": Path(args.url).name or "document.pdf", "file_url": args.url}
    if kind is SourceType.WEBSEARCH:
        payload: dict[str, Any] = {"query": args.query}
        if args.max_results is not None:
            payload["max_results"] = args.max_results
        return payload
    return {"url": args.url}


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest one source and print its summary."""
    service = components["ingestion_service"]
    print(f"Ingesting {args.source_type} source")

    job_id = await service.create_job(
        workspace_id=args.workspace,
        user_id=_USER_DEFAULT,
        source_type=args.source_type,
        payload=_ingest_payload(args),
    )
    status = await service.get_status(job_id)
    if status.status is not JobStatus.COMPLETED:
        print(f"Ingestion failed: {status.error}", file=sys.stderr)
        print(f"  Job ID: {job_id}")
        return 1

    content = await service.get_processed_content(job_id)
    print("\nIngestion complete:")
    print(f"  Job ID:     {job_id}")
    print(f"  Chunks:     {len(content.chunks)}")
    print(f"  Words:      {content.word_count}")
    print(f"  Citations:  {len(content.citations)}")
    print(f"  Summary:    {content.summary[:200]}")
    return 0


async def _handle_generate(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Generate a mind map from a prompt and/or a completed ingestion job."""
    prompt = args.prompt or ""
    sources: list[str] = []
    if args.source_job:
        content = await components["ingestion_service"].get_processed_content(args.source_job)
        if content is None:
            print(f"Ingestion job {args.source_job} has no processed content", file=sys.stderr)
            return 1
        sources = [chunk.text for chunk in content.chunks[:8]]
        prompt = prompt or content.summary
    if not prompt:
        print("Error: --prompt or --source-job is required", file=sys.stderr)
        return 1

    result = await components["synthesis_engine"].generate_outline(
        prompt=prompt,
        workspace_id=args.workspace,
        user_id=_USER_DEFAULT,
        provider=args.provider,
        complexity=args.complexity,
        sources=sources,
    )
    print(f"Generated mind map {result.map_id}: {result.document.title}")
    print(f"  Nodes: {count_nodes(result.document.root_nodes)}  Tokens: {result.tokens_used}")
    _write_document(serialize_outline(result.document), args.output)
    return 0


async def _handle_expand(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["synthesis_engine"].expand_node(
        args.map_id,
        args.node_id,
        user_id=_USER_DEFAULT,
        prompt=args.prompt,
        depth=args.depth,
        provider=args.provider,
    )
    print(f"Added {len(result.created_node_ids)} node(s) under {args.node_id}")
    return 0


async def _handle_regenerate(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["synthesis_engine"].regenerate_branch(
        args.map_id,
        args.node_id,
        user_id=_USER_DEFAULT,
        prompt=args.prompt,
        provider=args.provider,
    )
    print(
        f"Regenerated {args.node_id}: removed {len(result.removed_node_ids)}, "
        f"created {len(result.created_node_ids)}"
    )
    return 0


async def _handle_summarize(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["synthesis_engine"].summarize_outline(
        args.map_id, user_id=_USER_DEFAULT, provider=args.provider
    )
    print(result.summary)
    return 0


async def _handle_show(args: argparse.Namespace, components: dict[str, Any]) -> int:
    document = await components["synthesis_engine"].get_outline(args.map_id)
    if args.format is None:
        _write_document(serialize_outline(document), args.output)
    else:
        exported = export_outline(
            document,
            args.format,
            include_citations=not args.no_citations,
            include_metadata=not args.no_metadata,
        )
        _write_document(exported.content, args.output)
    return 0


def _write_document(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        print(f"  Written to {output}")
    else:
        print(text)


_HANDLERS = {
    "ingest": _handle_ingest,
    "generate": _handle_generate,
    "expand": _handle_expand,
    "regenerate": _handle_regenerate,
    "summarize": _handle_summarize,
    "show": _handle_show,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    async with _services(app_settings) as components:
        try:
            return await _HANDLERS[args.command](args, components)
        except MindweaveError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mindweave",
        description="Ingest sources and generate mind maps.",
    )
    parser.add_argument("--workspace", default=_WORKSPACE_DEFAULT, help="Workspace id (default: cli)")
    subparsers = parser.add_subparsers(dest="command")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a content source")
    sources = ingest_parser.add_subparsers(dest="source_type", required=True)

    text_parser = sources.add_parser("text", help="Plain text")
    text_group = text_parser.add_mutually_exclusive_group(required=True)
    text_group.add_argument("--text", help="Inline text")
    text_group.add_argument("--file", help="Path to a UTF-8 text file")
    text_parser.add_argument("--title", help="Optional title")

    youtube_parser = sources.add_parser("youtube", help="YouTube video transcript")
    youtube_parser.add_argument("--url", required=True, help="Video URL")

    pdf_parser = sources.add_parser("pdf", help="PDF document")
    pdf_group = pdf_parser.add_mutually_exclusive_group(required=True)
    pdf_group.add_argument("--file", help="Path to a local PDF")
    pdf_group.add_argument("--url", help="URL of a PDF")

    web_parser = sources.add_parser("web", help="Web page article")
    web_parser.add_argument("--url", required=True, help="Page URL")

    search_parser = sources.add_parser("websearch", help="Web search results")
    search_parser.add_argument("--query", required=True, help="Search query")
    search_parser.add_argument("--max-results", type=int, dest="max_results")

    # -- generate --
    gen_parser = subparsers.add_parser("generate", help="Generate a mind map")
    gen_parser.add_argument("--prompt", help="Topic or instruction")
    gen_parser.add_argument("--source-job", dest="source_job", help="Completed ingestion job id")
    gen_parser.add_argument(
        "--complexity",
        default=ComplexityLevel.MODERATE.value,
        choices=[level.value for level in ComplexityLevel],
    )
    gen_parser.add_argument("--provider", help="LLM provider (default: DEFAULT_PROVIDER)")
    gen_parser.add_argument("--output", "-o", help="Write the outline JSON to this file")

    # -- expand / regenerate --
    for name, help_text in (("expand", "Add children to a node"), ("regenerate", "Rewrite a branch")):
        node_parser = subparsers.add_parser(name, help=help_text)
        node_parser.add_argument("--map-id", required=True, dest="map_id")
        node_parser.add_argument("--node-id", required=True, dest="node_id")
        node_parser.add_argument("--prompt", help="Focus for the new content")
        node_parser.add_argument("--provider")
        if name == "expand":
            node_parser.add_argument("--depth", type=int, choices=range(1, 6))

    # -- summarize / show --
    sum_parser = subparsers.add_parser("summarize", help="Summarize a mind map")
    sum_parser.add_argument("--map-id", required=True, dest="map_id")
    sum_parser.add_argument("--provider")

    show_parser = subparsers.add_parser("show", help="Print or export a stored mind map")
    show_parser.add_argument("--map-id", required=True, dest="map_id")
    show_parser.add_argument(
        "--format",
        choices=[f.value for f in ExportFormat],
        help="Export format (default: the raw outline document as JSON)",
    )
    show_parser.add_argument("--no-citations", action="store_true", help="Omit node sources and references")
    show_parser.add_argument("--no-metadata", action="store_true", help="Omit the title and summary header")
    show_parser.add_argument("--output", "-o", help="Write the result to this file")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Settings come from the environment / ``.env`` as for the API, with
    inline scheduling and the SQLite store forced on.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    exit_code = asyncio.run(_run(args, _cli_settings()))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
