"""Mindweave API layer: routes, schemas, SSE streaming and middleware."""

from mindweave.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from mindweave.api.routes import router
from mindweave.api.schemas import (
    ErrorResponse,
    GenerateMapRequest,
    HealthResponse,
    IngestRequest,
    IngestResponse,
)
from mindweave.api.streaming import MapGenerationStream

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "MapGenerationStream",
    "ErrorResponse",
    "GenerateMapRequest",
    "HealthResponse",
    "IngestRequest",
    "IngestResponse",
]
