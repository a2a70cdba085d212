"""Shared behaviour for concrete connectors.

:class:`BaseConnector` adds three helpers on top of :class:`IConnector`:

* ``_create_extracted_content`` fills ``word_count`` so no connector
  computes it differently,
* ``_check_size`` raises :class:`SizeLimitExceededError` before extraction,
* ``_with_retry`` runs a remote call through
  :func:`mindweave.utils.retry.retry_with_backoff` with the connector's
  configured attempts and base delay.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from mindweave.interfaces.connector import IConnector
from mindweave.models.citation import Citation
from mindweave.models.ingestion import ContentMetadata, ExtractedContent, SourceType
from mindweave.services.ingestion.chunker import count_words
from mindweave.utils.errors import SizeLimitExceededError
from mindweave.utils.retry import retry_with_backoff

_T = TypeVar("_T")

MIB = 1024 * 1024

SIZE_LIMITS: dict[SourceType, int] = {
    SourceType.TEXT: 1 * MIB,
    SourceType.PDF: 10 * MIB,
    SourceType.WEB: 5 * MIB,
    SourceType.YOUTUBE: 2 * MIB,
    SourceType.WEBSEARCH: 5 * MIB,
}


def utc_timestamp() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


class BaseConnector(IConnector):
    """Connector base with size limits and retry settings.

    Parameters
    ----------
    max_size_bytes:
        Override of the default limit for this source type.
    max_attempts, initial_delay:
        Retry budget for remote calls; ignored by local connectors.
    """

    default_max_attempts = 1
    default_initial_delay = 1.0

    def __init__(
        self,
        max_size_bytes: int | None = None,
        max_attempts: int | None = None,
        initial_delay: float | None = None,
    ) -> None:
        self._max_size_bytes = max_size_bytes or SIZE_LIMITS[self.source_type]
        self._max_attempts = max_attempts or self.default_max_attempts
        self._initial_delay = self.default_initial_delay if initial_delay is None else initial_delay

    @property
    def max_size_bytes(self) -> int:
        return self._max_size_bytes

    def _check_size(self, size_bytes: int, what: str = "content") -> None:
        if size_bytes > self._max_size_bytes:
            raise SizeLimitExceededError(
                message=(
                    f"{what} is {size_bytes} bytes; the {self.source_type.value} "
                    f"limit is {self._max_size_bytes} bytes"
                ),
                provider_name=self.source_type.value,
            )

    async def _with_retry(self, operation: Callable[[], Awaitable[_T]], name: str) -> _T:
        return await retry_with_backoff(
            operation,
            max_attempts=self._max_attempts,
            initial_delay=self._initial_delay,
            operation_name=f"{self.source_type.value}.{name}",
        )

    @staticmethod
    def _create_extracted_content(
        text: str,
        metadata: dict[str, Any],
        citations: list[Citation] | None = None,
    ) -> ExtractedContent:
        return ExtractedContent(
            text=text,
            metadata=ContentMetadata(**metadata, word_count=count_words(text)),
            citations=citations or [],
        )
