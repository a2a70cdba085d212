"""Connector for single web pages.

Fetches HTML with httpx (browser User-Agent, retried with backoff) and
extracts the main text plus title/author/description with trafilatura,
which strips navigation, ads and comments.  The remaining text is
normalized and common boilerplate phrases are removed.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import structlog
import trafilatura

from mindweave.models.citation import Citation
from mindweave.models.ingestion import ExtractedContent, SourceType, WebPayload
from mindweave.services.ingestion.chunker import normalize_whitespace, remove_boilerplate
from mindweave.services.ingestion.connectors.base import BaseConnector, utc_timestamp
from mindweave.utils import http
from mindweave.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_EXCERPT_CHARS = 200


class WebConnector(BaseConnector):
    """URL -> readable article text."""

    source_type = SourceType.WEB
    default_max_attempts = 3
    default_initial_delay = 2.0

    def __init__(self, http_client: httpx.AsyncClient, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client = http_client

    def parse_payload(self, payload: dict[str, Any]) -> WebPayload:
        return super().parse_payload(payload)

    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        parsed = self.parse_payload(payload)
        html = await self._with_retry(lambda: self._fetch(parsed.url), "fetch")

        raw_text, meta = await asyncio.to_thread(self._parse_html, html)
        text = normalize_whitespace(remove_boilerplate(raw_text or ""))
        if not text:
            raise ExtractionError(
                message=f"No readable content found at {parsed.url}",
                provider_name=self.source_type.value,
            )

        title = meta.get("title") or parsed.url
        author = meta.get("author") or None
        excerpt = meta.get("description") or text[:_EXCERPT_CHARS]
        logger.info("web_page_extracted", url=parsed.url, title=title, chars=len(text))
        return self._create_extracted_content(
            text,
            {
                "title": title,
                "url": parsed.url,
                "author": author,
                "timestamp": meta.get("date") or utc_timestamp(),
                "site_name": meta.get("sitename"),
                "excerpt": excerpt,
            },
            [Citation(title=title, url=parsed.url, author=author, excerpt=excerpt)],
        )

    async def _fetch(self, url: str) -> str:
        body, response = await http.download(
            self._client,
            url,
            self.source_type.value,
            lambda size: self._check_size(size, "Page"),
            headers=http.DEFAULT_HEADERS,
            follow_redirects=True,
        )
        try:
            return body.decode(response.charset_encoding or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    @staticmethod
    def _parse_html(html: str) -> tuple[str | None, dict[str, Any]]:
        """Blocking trafilatura pass: main text plus a metadata dict."""
        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        meta: dict[str, Any] = {}
        raw_meta = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
        )
        if raw_meta:
            try:
                meta = json.loads(raw_meta)
            except json.JSONDecodeError:
                logger.debug("web_metadata_parse_failed")
        return text, meta
