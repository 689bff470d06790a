"""Configuration: environment settings and per-binding config stores."""

from .settings import (
    CharmSettings,
    HttpSettings,
    LoggingSettings,
    OpenAISettings,
    ResendSettings,
    ScriptbindSettings,
    clear_settings_cache,
    get_settings,
    secret_value,
)
from .store import ConfigStore, Producer

__all__ = [
    # Store
    "ConfigStore", "Producer",
    # Settings
    "ScriptbindSettings", "LoggingSettings", "HttpSettings",
    "ResendSettings", "OpenAISettings", "CharmSettings",
    "get_settings", "clear_settings_cache", "secret_value",
]
