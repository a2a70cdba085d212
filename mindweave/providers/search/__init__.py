"""Web search backends used by the web-search connector."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import httpx

from mindweave.config.settings import Settings
from mindweave.interfaces.web_search_provider import IWebSearchProvider
from mindweave.providers.search.bing_provider import BingSearchProvider
from mindweave.providers.search.serpapi_provider import SerpAPISearchProvider
from mindweave.providers.search.tavily_provider import TavilySearchProvider
from mindweave.utils.errors import ConfigurationError

DEFAULT_PROVIDER_ORDER = ("tavily", "serpapi", "bing")

_BUILDERS: dict[str, Callable[[Settings, httpx.AsyncClient], IWebSearchProvider]] = {
    "tavily": lambda s, client: TavilySearchProvider(api_key=s.tavily_api_key, http_client=client),
    "serpapi": lambda s, client: SerpAPISearchProvider(api_key=s.serpapi_api_key, http_client=client),
    "bing": lambda s, client: BingSearchProvider(api_key=s.bing_search_api_key, http_client=client),
}


def build_search_providers(
    settings: Settings,
    http_client: httpx.AsyncClient,
    provider_order: Sequence[str] | None = None,
) -> list[IWebSearchProvider]:
    """Return the search backends in fallback order.

    *provider_order* comes from ``websearch.provider_order`` in the config
    (default Tavily, SerpAPI, Bing); backends it leaves out are not built.
    Unconfigured backends are included; the connector skips them with
    ``is_available()``.

    Raises
    ------
    ConfigurationError
        If *provider_order* names an unknown backend.
    """
    order = list(provider_order or DEFAULT_PROVIDER_ORDER)
    unknown = [name for name in order if name not in _BUILDERS]
    if unknown:
        raise ConfigurationError(message=f"Unknown search provider(s) in provider_order: {', '.join(unknown)}")
    return [_BUILDERS[name](settings, http_client) for name in order]
