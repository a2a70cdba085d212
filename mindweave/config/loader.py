"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

    1. config/config.yaml  : static defaults checked into the repo
    2. .env file           : local developer overrides (not committed)
    3. environment vars    : set at deploy time

``_deep_merge`` merges nested dicts key by key::

    base      = {"chunking": {"max_chunk_size": 1000}}
    overrides = {"chunking": {"overlap": 150}}
    result    = {"chunking": {"max_chunk_size": 1000, "overlap": 150}}
"""

from pathlib import Path

import yaml

from mindweave.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to read overrides from. A fresh one is
                  built from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "default_provider": settings.default_provider,
            "available_providers": settings.get_available_llm_providers(),
        },
        "search": {
            "available_providers": settings.get_available_search_providers(),
        },
        "store": {
            "backend": settings.store_backend,
            "db_path": settings.store_db_path,
        },
        "scheduler": {
            "backend": settings.scheduler_backend,
            "workers": settings.scheduler_workers,
            "queue_size": settings.scheduler_queue_size,
        },
        "streaming": {
            "poll_interval": settings.ingestion_poll_interval,
            "timeout": settings.ingestion_timeout,
            "queue_size": settings.stream_queue_size,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge ``overrides`` into ``base`` in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
