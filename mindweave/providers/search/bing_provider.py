"""Bing Web Search v7 provider.

GETs ``https://api.bing.microsoft.com/v7.0/search`` with the key in the
``Ocp-Apim-Subscription-Key`` header and reads ``webPages.value``
(``name``, ``url``, ``snippet``).
"""

from __future__ import annotations

import httpx
import structlog

from mindweave.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from mindweave.utils import http
from mindweave.utils.errors import TransientFetchError

logger = structlog.get_logger(logger_name=__name__)

_SEARCH_URL = "https://api.bing.microsoft.com/v7.0/search"


class BingSearchProvider(IWebSearchProvider):
    def __init__(self, api_key: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._client = http_client

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        response = await http.request(
            self._client,
            "GET",
            _SEARCH_URL,
            self.get_provider_name(),
            params={"q": query, "count": num_results},
            headers={"Ocp-Apim-Subscription-Key": self._api_key},
        )
        try:
            items = (response.json().get("webPages") or {}).get("value") or []
        except ValueError as exc:
            raise TransientFetchError(
                message="Bing returned malformed JSON",
                provider_name=self.get_provider_name(),
            ) from exc

        results = [
            SearchResult(title=item.get("name") or item["url"], url=item["url"], snippet=item.get("snippet"))
            for item in items[:num_results]
            if item.get("url")
        ]
        logger.info("bing_search", query=query, results=len(results))
        return results

    def get_provider_name(self) -> str:
        return "bing"

    def is_available(self) -> bool:
        return bool(self._api_key)
