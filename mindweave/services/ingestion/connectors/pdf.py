"""Connector for PDF documents.

Accepts either raw bytes or a URL.  URLs are downloaded with httpx (retried
with backoff); the size limit is checked against ``Content-Length`` before
the body is trusted and against the body itself afterwards.  Text comes
from PyMuPDF (``fitz``) page by page in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Any

import fitz  # PyMuPDF
import httpx
import structlog

from mindweave.models.citation import Citation
from mindweave.models.ingestion import ExtractedContent, PdfPayload, SourceType
from mindweave.services.ingestion.chunker import normalize_whitespace
from mindweave.services.ingestion.connectors.base import BaseConnector, utc_timestamp
from mindweave.utils import http
from mindweave.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PdfConnector(BaseConnector):
    """PDF bytes or URL -> page text joined with blank lines."""

    source_type = SourceType.PDF
    default_max_attempts = 2
    default_initial_delay = 1.0

    def __init__(self, http_client: httpx.AsyncClient, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client = http_client

    def parse_payload(self, payload: dict[str, Any]) -> PdfPayload:
        parsed = super().parse_payload(payload)
        if parsed.file_bytes is not None:
            self._check_size(len(parsed.file_bytes), "PDF file")
        return parsed

    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        parsed = self.parse_payload(payload)
        if parsed.file_bytes is not None:
            data = parsed.file_bytes
        else:
            assert parsed.file_url is not None
            data = await self._with_retry(lambda: self._download(parsed.file_url), "download")

        pages, doc_meta = await asyncio.to_thread(self._read_pdf, data, parsed.filename)
        text = normalize_whitespace("\n\n".join(page for page in pages if page))
        if not text:
            raise ExtractionError(
                message=f"No extractable text in {parsed.filename}",
                provider_name=self.source_type.value,
            )

        title = doc_meta.get("title") or parsed.filename
        author = doc_meta.get("author") or None
        logger.info(
            "pdf_extracted",
            filename=parsed.filename,
            pages=len(pages),
            chars=len(text),
        )
        return self._create_extracted_content(
            text,
            {
                "title": title,
                "url": parsed.file_url,
                "author": author,
                "timestamp": utc_timestamp(),
                "filename": parsed.filename,
                "page_count": len(pages),
            },
            [Citation(title=title, url=parsed.file_url, author=author)],
        )

    async def _download(self, url: str) -> bytes:
        data, _ = await http.download(
            self._client,
            url,
            self.source_type.value,
            lambda size: self._check_size(size, "PDF file"),
        )
        return data

    def _read_pdf(self, data: bytes, filename: str) -> tuple[list[str], dict[str, str]]:
        """Blocking PyMuPDF read; returns per-page text and document metadata."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Could not open {filename} as a PDF: {exc}",
                provider_name=self.source_type.value,
            ) from exc
        try:
            pages = [doc[index].get_text("text").strip() for index in range(len(doc))]
            metadata = {k: v for k, v in (doc.metadata or {}).items() if isinstance(v, str) and v}
        finally:
            doc.close()
        return pages, metadata
