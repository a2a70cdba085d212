"""Tavily web search provider.

POSTs to ``https://api.tavily.com/search``; the API key travels in the JSON
body.  Results carry ``title``, ``url`` and ``content``.
"""

from __future__ import annotations

import httpx
import structlog

from mindweave.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from mindweave.utils import http
from mindweave.utils.errors import TransientFetchError

logger = structlog.get_logger(logger_name=__name__)

_SEARCH_URL = "https://api.tavily.com/search"


class TavilySearchProvider(IWebSearchProvider):
    def __init__(self, api_key: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._client = http_client

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        response = await http.request(
            self._client,
            "POST",
            _SEARCH_URL,
            self.get_provider_name(),
            json={"api_key": self._api_key, "query": query, "max_results": num_results},
        )
        try:
            items = response.json().get("results") or []
        except ValueError as exc:
            raise TransientFetchError(
                message="Tavily returned malformed JSON",
                provider_name=self.get_provider_name(),
            ) from exc

        results = [
            SearchResult(title=item.get("title") or item["url"], url=item["url"], snippet=item.get("content"))
            for item in items[:num_results]
            if item.get("url")
        ]
        logger.info("tavily_search", query=query, results=len(results))
        return results

    def get_provider_name(self) -> str:
        return "tavily"

    def is_available(self) -> bool:
        return bool(self._api_key)
