from __future__ import annotations

from ._validators import _ensure_api_key, validate_model_name
from .perplexity import API_URL, PerplexityConfig
from .settings import AppConfig, RuntimeConfig, Settings, load_config

__all__ = [
    "API_URL",
    "AppConfig",
    "PerplexityConfig",
    "RuntimeConfig",
    "Settings",
    "_ensure_api_key",
    "load_config",
    "validate_model_name",
]
