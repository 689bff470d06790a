"""Foundation - Core building blocks for scriptbind.

Contains: builtins and module bindings, error handling, registry, config.
"""

from __future__ import annotations

__all__ = [
    # Core
    "Builtin", "ScriptModule", "Operation", "operation", "ModuleBinding", "mask_secret",
    # Errors
    "ErrorCode", "BindingError", "BindingException", "classify_exception",
    "ArgumentError", "TypeMismatch", "NotConfigured", "ClientUnavailable", "MissingConfig",
    "UnsupportedProvider", "ModelNotConfigured", "ValidationError", "MissingDomain",
    "TransportError", "MarshalError", "FileError", "Cancelled",
    # Registry
    "ModuleRegistry", "get_registry", "set_registry", "reset_registry",
    # Config
    "ConfigStore", "ScriptbindSettings", "get_settings", "clear_settings_cache",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("Builtin", "ScriptModule", "Operation", "operation", "ModuleBinding", "mask_secret"):
        from . import core
        return getattr(core, name)

    if name in ("ErrorCode", "BindingError", "BindingException", "classify_exception",
                "ArgumentError", "TypeMismatch", "NotConfigured", "ClientUnavailable", "MissingConfig",
                "UnsupportedProvider", "ModelNotConfigured", "ValidationError", "MissingDomain",
                "TransportError", "MarshalError", "FileError", "Cancelled"):
        from . import errors
        return getattr(errors, name)

    if name in ("ModuleRegistry", "get_registry", "set_registry", "reset_registry"):
        from . import registry
        return getattr(registry, name)

    if name in ("ConfigStore", "ScriptbindSettings", "get_settings", "clear_settings_cache"):
        from . import config
        return getattr(config, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
