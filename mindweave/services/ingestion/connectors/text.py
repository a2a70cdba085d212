"""Connector for pasted plain text."""

from __future__ import annotations

from typing import Any

from mindweave.models.ingestion import ExtractedContent, SourceType, TextPayload
from mindweave.services.ingestion.chunker import normalize_whitespace
from mindweave.services.ingestion.connectors.base import BaseConnector, utc_timestamp

DEFAULT_TITLE = "Text Input"


class TextConnector(BaseConnector):
    """Local, synchronous-fast connector; no network, no citations."""

    source_type = SourceType.TEXT

    def parse_payload(self, payload: dict[str, Any]) -> TextPayload:
        parsed = super().parse_payload(payload)
        self._check_size(len(parsed.text.encode("utf-8")), "text")
        return parsed

    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        parsed = self.parse_payload(payload)
        text = normalize_whitespace(parsed.text)
        return self._create_extracted_content(
            text,
            {"title": parsed.title or DEFAULT_TITLE, "timestamp": utc_timestamp()},
        )
