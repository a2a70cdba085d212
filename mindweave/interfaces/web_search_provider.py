"""Abstract base class for web-search service providers.

The web-search connector walks an ordered list of these and uses the first
one whose credentials are present.  Implementations wrap Tavily, SerpAPI and
Bing in ``mindweave/providers/search/``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SearchResult:
    """A single web-search result.

    Attributes
    ----------
    title:
        The page title as returned by the search engine.
    url:
        The canonical URL of the result page.
    snippet:
        An optional text excerpt/description from the result.
    """

    title: str
    url: str
    snippet: str | None = None


class IWebSearchProvider(ABC):
    """Contract for web-search backends used by the web-search connector."""

    @abstractmethod
    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        """Execute a web search and return the top results.

        Raises
        ------
        mindweave.utils.errors.TransientFetchError
            If the request fails at the network level or the backend
            returns an error status.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend identifier, e.g. ``"tavily"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend's API key is configured."""
