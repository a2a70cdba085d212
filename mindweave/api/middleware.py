"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``main.py`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``::

    Client -> RequestLogging -> ErrorHandling -> route handler

and the request log sees the final status code after an error has been
converted to JSON.

``MindweaveError`` subclasses map to HTTP statuses:

    ValidationError          422
    UnsupportedTypeError     400
    NotFoundError            404
    SizeLimitExceededError   413
    ConfigurationError       503
    IngestionTimeoutError    504
    Transient / Extraction / LLM / ModelOutputParse   502
    anything else            500
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindweave.api.schemas import ErrorResponse
from mindweave.utils.errors import (
    ConfigurationError,
    ExtractionError,
    IngestionTimeoutError,
    LLMError,
    MindweaveError,
    ModelOutputParseError,
    NotFoundError,
    SizeLimitExceededError,
    TransientFetchError,
    UnsupportedTypeError,
    ValidationError,
)
from mindweave.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# First match wins, so subclasses must precede their bases.
_STATUS_CODES: tuple[tuple[type[MindweaveError], int], ...] = (
    (ValidationError, 422),
    (UnsupportedTypeError, 400),
    (NotFoundError, 404),
    (SizeLimitExceededError, 413),
    (ConfigurationError, 503),
    (IngestionTimeoutError, 504),
    (TransientFetchError, 502),
    (ExtractionError, 502),
    (LLMError, 502),
    (ModelOutputParseError, 502),
)


def status_code_for(exc: MindweaveError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def error_response(exc: MindweaveError) -> JSONResponse:
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=exc.message,
        errors=exc.errors if isinstance(exc, ValidationError) and exc.errors else None,
    )
    return JSONResponse(status_code=status_code_for(exc), content=body.model_dump(exclude_none=True))


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; ``["*"]`` when no origins are given."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``MindweaveError`` subclasses into JSON :class:`ErrorResponse` bodies.

    Details stay in the server log; the client sees the error class name and
    message only.  Other exceptions fall through to FastAPI's default 500.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except MindweaveError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            return error_response(exc)
