"""Custom exception hierarchy for Mindweave.

All application exceptions inherit from :class:`MindweaveError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "tavily", "youtube") caused the failure.

The hierarchy follows the two halves of the system:

    MindweaveError  (base -- catch-all for any mindweave error)
    +-- ValidationError          (malformed payload or outline schema)
    +-- UnsupportedTypeError     (unknown enum value)
    |   +-- UnsupportedSourceError
    |   +-- UnsupportedProviderError
    +-- TransientFetchError      (network / remote failure, retryable)
    +-- SizeLimitExceededError   (input larger than the connector allows)
    +-- ExtractionError          (connector ran but produced nothing usable)
    +-- ModelOutputParseError    (LLM returned non-JSON or invalid outline)
    +-- IngestionTimeoutError    (ingestion wait loop exceeded its budget)
    +-- NotFoundError            (job, map or node id unknown)
    +-- ConfigurationError       (startup / missing credentials)
    +-- LLMError                 (any LLM API call failure)

Only :class:`TransientFetchError` is retried, and only inside connectors
(see :mod:`mindweave.utils.retry`).  Everything else propagates to the
ingestion orchestrator or synthesis engine, which records the message on the
job and marks it ``failed``.  A cancelled job is marked ``failed`` with the
error ``"cancelled"`` (see :func:`failure_message`).
"""

import asyncio


class MindweaveError(Exception):
    """Base exception for all Mindweave errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[tavily] Search request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class ValidationError(MindweaveError):
    """Raised when a payload or outline document fails validation."""

    def __init__(
        self,
        message: str = "Validation failed",
        provider_name: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._errors = list(errors or [])

    @property
    def errors(self) -> list[str]:
        return list(self._errors)


class UnsupportedTypeError(MindweaveError):
    """Raised when an enum-like value (source type, provider) is unknown."""

    def __init__(
        self,
        message: str = "Unsupported type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedSourceError(UnsupportedTypeError):
    """Raised when no connector is registered for a source type."""

    def __init__(
        self,
        message: str = "Unsupported source type",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedProviderError(UnsupportedTypeError):
    """Raised when an LLM provider name has no adapter."""

    def __init__(
        self,
        message: str = "Unsupported provider",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SizeLimitExceededError(MindweaveError):
    """Raised when input content exceeds a connector's maximum size."""

    def __init__(
        self,
        message: str = "Content exceeds the maximum allowed size",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class TransientFetchError(MindweaveError):
    """Raised when a remote fetch fails in a way that may succeed on retry.

    Connectors wrap their remote calls in
    :func:`mindweave.utils.retry.retry_with_backoff`, which retries only this
    class of error.
    """

    def __init__(
        self,
        message: str = "Remote fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(MindweaveError):
    """Raised when a connector ran but produced no usable content."""

    def __init__(
        self,
        message: str = "Content extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Synthesis errors
# ---------------------------------------------------------------------------

class LLMError(MindweaveError):
    """Raised when an LLM API call fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ModelOutputParseError(MindweaveError):
    """Raised when an LLM response is not JSON or fails outline validation."""

    def __init__(
        self,
        message: str = "Model output could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class IngestionTimeoutError(MindweaveError):
    """Raised when waiting for an ingestion job exceeds its time budget."""

    def __init__(
        self,
        message: str = "Timed out waiting for ingestion to complete",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(MindweaveError):
    """Raised when a job, outline document or node id is unknown."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(MindweaveError):
    """Raised when configuration is invalid or credentials are missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def failure_message(exc: BaseException) -> str:
    """Return the text recorded on a job that ended with *exc*."""
    if isinstance(exc, asyncio.CancelledError):
        return "cancelled"
    return str(exc) or type(exc).__name__
