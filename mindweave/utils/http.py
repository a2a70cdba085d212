"""httpx helpers that map failures onto the error hierarchy.

    timeout / connection error / 5xx / 408 / 429  ->  TransientFetchError
    any other 4xx                                 ->  ExtractionError

Only the transient class is retried by :func:`retry_with_backoff`, so a 404
fails on the first attempt while a flaky upstream gets its retries.

:func:`download` streams the body and stops reading as soon as it passes
the caller's size limit, whether or not ``Content-Length`` was sent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from mindweave.utils.errors import ExtractionError, TransientFetchError

_RETRYABLE_STATUS = frozenset({408, 429})

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36 mindweave/0.1"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@contextmanager
def _mapped_errors(url: str, provider_name: str) -> Iterator[None]:
    try:
        yield
    except httpx.TimeoutException as exc:
        raise TransientFetchError(
            message=f"Timeout fetching {url}",
            provider_name=provider_name,
        ) from exc
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status >= 500 or status in _RETRYABLE_STATUS:
            raise TransientFetchError(
                message=f"HTTP {status} for {url}",
                provider_name=provider_name,
            ) from exc
        raise ExtractionError(
            message=f"HTTP {status} for {url}",
            provider_name=provider_name,
        ) from exc
    except httpx.HTTPError as exc:
        raise TransientFetchError(
            message=f"HTTP error fetching {url}: {exc}",
            provider_name=provider_name,
        ) from exc


async def request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    provider_name: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request and return the response if its status is 2xx."""
    with _mapped_errors(url, provider_name):
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
    return response


async def download(
    client: httpx.AsyncClient,
    url: str,
    provider_name: str,
    check_size: Callable[[int], None],
    **kwargs: Any,
) -> tuple[bytes, httpx.Response]:
    """GET *url* and return its body and the (closed) response.

    *check_size* is called with the declared ``Content-Length`` (when
    present) and with the running byte count after every chunk; it aborts
    the download by raising.  The connection is closed as soon as it does.
    """
    chunks: list[bytes] = []
    received = 0
    with _mapped_errors(url, provider_name):
        async with client.stream("GET", url, **kwargs) as response:
            response.raise_for_status()
            declared = response.headers.get("content-length")
            if declared and declared.isdigit():
                check_size(int(declared))
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                check_size(received)
                chunks.append(chunk)
    return b"".join(chunks), response
