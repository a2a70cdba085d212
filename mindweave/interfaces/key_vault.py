"""Abstract base class for per-user LLM API key lookup."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IKeyVault(ABC):
    """Returns a plaintext API key for a user and provider pair."""

    @abstractmethod
    async def get_api_key(self, user_id: str | None, provider: str) -> str | None:
        """Return the key to use, or ``None`` if none is stored."""
