"""Abstract base class for content-ingestion connectors.

One connector exists per :class:`~mindweave.models.ingestion.SourceType`.
Each converts a raw payload dict into :class:`ExtractedContent`.  Connectors
are registered in a lookup table keyed by source type
(``mindweave.services.ingestion.connectors.build_connector_registry``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import pydantic

from mindweave.models.ingestion import PAYLOAD_MODELS, ExtractedContent, SourceType
from mindweave.utils.errors import MindweaveError, ValidationError


class IConnector(ABC):
    """Contract for a single source-type connector."""

    #: Source type this connector handles.
    source_type: SourceType

    @property
    @abstractmethod
    def max_size_bytes(self) -> int:
        """Largest input this connector accepts, in bytes."""

    def parse_payload(self, payload: dict[str, Any]) -> pydantic.BaseModel:
        """Validate ``payload`` against this source's payload model.

        Cheap and local: no network I/O.  Subclasses extend this with
        source-specific checks (e.g. a parseable video id).

        Raises
        ------
        ValidationError
            If the payload is malformed.
        """
        model = PAYLOAD_MODELS[self.source_type]
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as exc:
            details = [
                f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ValidationError(
                message=f"Invalid {self.source_type.value} payload: " + "; ".join(details),
                provider_name=self.source_type.value,
                errors=details,
            ) from exc

    def validate(self, payload: dict[str, Any]) -> bool:
        """Return ``True`` if ``payload`` would be accepted by :meth:`extract`."""
        try:
            self.parse_payload(payload)
        except MindweaveError:
            return False
        return True

    @abstractmethod
    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        """Fetch and extract content for ``payload``.

        Raises
        ------
        ValidationError
            Malformed payload.
        SizeLimitExceededError
            Input larger than :attr:`max_size_bytes`.
        TransientFetchError
            Remote failure that persisted through all retries.
        ExtractionError
            The source yielded no usable text.
        ConfigurationError
            Required credentials are missing.
        """
