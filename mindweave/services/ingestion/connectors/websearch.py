"""Connector that turns a search query into one aggregated document.

Backends are tried in their configured order (``websearch.provider_order``,
Tavily, SerpAPI, Bing by default) and the first with credentials is used; there is no fallback to the next
backend when that one fails, only the retry budget.  With no backend
configured the extraction fails at once with :class:`ConfigurationError`.
A payload without ``max_results`` gets ``websearch.default_max_results``.

Each result becomes a Markdown section::

    ## {title}

    URL: {url}

    {snippet}
"""

from __future__ import annotations

from typing import Any

import structlog

from mindweave.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from mindweave.models.citation import Citation
from mindweave.models.ingestion import ExtractedContent, SourceType, WebSearchPayload
from mindweave.services.ingestion.chunker import normalize_whitespace
from mindweave.services.ingestion.connectors.base import BaseConnector, utc_timestamp
from mindweave.utils.errors import ConfigurationError, ExtractionError

logger = structlog.get_logger(logger_name=__name__)


def format_results(results: list[SearchResult]) -> str:
    sections = [
        f"## {result.title}\n\nURL: {result.url}\n\n{result.snippet or ''}\n"
        for result in results
    ]
    return normalize_whitespace("\n\n".join(sections))


class WebSearchConnector(BaseConnector):
    """Query -> top-N results aggregated into Markdown with one citation each."""

    source_type = SourceType.WEBSEARCH
    default_max_attempts = 2
    default_initial_delay = 1.0

    def __init__(
        self,
        search_providers: list[IWebSearchProvider],
        default_max_results: int = 5,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._providers = list(search_providers)
        self._default_max_results = default_max_results

    def parse_payload(self, payload: dict[str, Any]) -> WebSearchPayload:
        return super().parse_payload(payload)

    def select_provider(self) -> IWebSearchProvider:
        """Return the first configured backend.

        Raises
        ------
        ConfigurationError
            If no backend has credentials.
        """
        for provider in self._providers:
            if provider.is_available():
                return provider
        raise ConfigurationError(
            message=(
                "No search provider configured. Set TAVILY_API_KEY, "
                "SERPAPI_API_KEY or BING_SEARCH_API_KEY."
            ),
            provider_name=self.source_type.value,
        )

    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        parsed = self.parse_payload(payload)
        provider = self.select_provider()
        max_results = parsed.max_results or self._default_max_results

        results = await self._with_retry(
            lambda: provider.search(parsed.query, num_results=max_results),
            "search",
        )
        results = results[:max_results]
        if not results:
            raise ExtractionError(
                message=f"No search results for {parsed.query!r}",
                provider_name=provider.get_provider_name(),
            )

        text = format_results(results)
        self._check_size(len(text.encode("utf-8")), "Aggregated search results")

        logger.info(
            "websearch_extracted",
            query=parsed.query,
            provider=provider.get_provider_name(),
            results=len(results),
        )
        return self._create_extracted_content(
            text,
            {
                "title": f"Web search: {parsed.query}",
                "timestamp": utc_timestamp(),
                "query": parsed.query,
                "result_count": len(results),
                "search_provider": provider.get_provider_name(),
            },
            [
                Citation(title=result.title, url=result.url, excerpt=result.snippet)
                for result in results
            ],
        )
