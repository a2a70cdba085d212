"""Key vault backed by application settings.

Per-user key storage and decryption belong to the account service; this
backend serves the deployment's own provider keys to every user, optionally
overlaid with keys registered at runtime.
"""

from __future__ import annotations

from mindweave.config.settings import Settings
from mindweave.interfaces.key_vault import IKeyVault


class SettingsKeyVault(IKeyVault):
    """Resolve API keys from ``Settings`` plus an in-process override map."""

    def __init__(self, settings: Settings) -> None:
        self._defaults = {
            "openai": settings.openai_api_key,
            "anthropic": settings.anthropic_api_key,
        }
        self._user_keys: dict[tuple[str, str], str] = {}

    def register_user_key(self, user_id: str, provider: str, api_key: str) -> None:
        self._user_keys[(user_id, provider)] = api_key

    async def get_api_key(self, user_id: str | None, provider: str) -> str | None:
        if user_id is not None and (user_id, provider) in self._user_keys:
            return self._user_keys[(user_id, provider)]
        return self._defaults.get(provider) or None
