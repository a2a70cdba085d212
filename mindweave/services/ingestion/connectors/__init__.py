"""Source connectors and the registry that maps source types to them."""

from __future__ import annotations

from typing import Any

import httpx

from mindweave.interfaces.connector import IConnector
from mindweave.interfaces.web_search_provider import IWebSearchProvider
from mindweave.models.ingestion import SourceType
from mindweave.services.ingestion.connectors.pdf import PdfConnector
from mindweave.services.ingestion.connectors.text import TextConnector
from mindweave.services.ingestion.connectors.web import WebConnector
from mindweave.services.ingestion.connectors.websearch import WebSearchConnector
from mindweave.services.ingestion.connectors.youtube import YouTubeConnector


def build_connector_registry(
    http_client: httpx.AsyncClient,
    search_providers: list[IWebSearchProvider],
    config: dict[str, Any] | None = None,
) -> dict[SourceType, IConnector]:
    """Construct one connector per source type.

    ``config`` is the resolved application config; its ``size_limits`` and
    ``retry`` sections override the connector defaults and
    ``websearch.default_max_results`` sets the search result count.
    """
    config = config or {}
    size_limits = config.get("size_limits", {})
    retry = config.get("retry", {})
    websearch = config.get("websearch", {})

    def _options(source_type: SourceType) -> dict[str, Any]:
        options: dict[str, Any] = {"max_size_bytes": size_limits.get(source_type.value)}
        options.update(retry.get(source_type.value, {}))
        return options

    return {
        SourceType.TEXT: TextConnector(max_size_bytes=size_limits.get("text")),
        SourceType.YOUTUBE: YouTubeConnector(http_client, **_options(SourceType.YOUTUBE)),
        SourceType.PDF: PdfConnector(http_client, **_options(SourceType.PDF)),
        SourceType.WEB: WebConnector(http_client, **_options(SourceType.WEB)),
        SourceType.WEBSEARCH: WebSearchConnector(
            search_providers,
            default_max_results=int(websearch.get("default_max_results", 5)),
            **_options(SourceType.WEBSEARCH),
        ),
    }


__all__ = [
    "PdfConnector",
    "TextConnector",
    "WebConnector",
    "WebSearchConnector",
    "YouTubeConnector",
    "build_connector_registry",
]
