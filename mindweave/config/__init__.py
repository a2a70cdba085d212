"""Configuration module: exports Settings and load_config."""

from mindweave.config.loader import load_config
from mindweave.config.settings import Settings

__all__ = ["Settings", "load_config"]
