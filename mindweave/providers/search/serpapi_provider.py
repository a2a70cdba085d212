"""SerpAPI (Google results) web search provider.

GETs ``https://serpapi.com/search.json`` and reads ``organic_results``
(``title``, ``link``, ``snippet``).
"""

from __future__ import annotations

import httpx
import structlog

from mindweave.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from mindweave.utils import http
from mindweave.utils.errors import TransientFetchError

logger = structlog.get_logger(logger_name=__name__)

_SEARCH_URL = "https://serpapi.com/search.json"


class SerpAPISearchProvider(IWebSearchProvider):
    def __init__(self, api_key: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._client = http_client

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        response = await http.request(
            self._client,
            "GET",
            _SEARCH_URL,
            self.get_provider_name(),
            params={"q": query, "api_key": self._api_key, "num": num_results},
        )
        try:
            items = response.json().get("organic_results") or []
        except ValueError as exc:
            raise TransientFetchError(
                message="SerpAPI returned malformed JSON",
                provider_name=self.get_provider_name(),
            ) from exc

        results = [
            SearchResult(title=item.get("title") or item["link"], url=item["link"], snippet=item.get("snippet"))
            for item in items[:num_results]
            if item.get("link")
        ]
        logger.info("serpapi_search", query=query, results=len(results))
        return results

    def get_provider_name(self) -> str:
        return "serpapi"

    def is_available(self) -> bool:
        return bool(self._api_key)
