"""Service bindings: email, llm and the charm family.

``register_defaults`` registers every module, configured from the environment,
into a registry so a host can resolve ``load("<module>", ...)`` right away.
"""

from __future__ import annotations

from scriptbind.foundation.registry import ModuleRegistry, get_registry

__all__ = ["EmailModule", "LLMModule", "KVModule", "FSModule", "AccountModule", "register_defaults"]


def register_defaults(registry: ModuleRegistry | None = None) -> ModuleRegistry:
    """Register all bindings built with ``from_settings()``; returns the registry."""
    from .charm import AccountModule, FSModule, KVModule
    from .email import EmailModule
    from .llm import LLMModule

    registry = registry if registry is not None else get_registry()
    for cls in (EmailModule, LLMModule, KVModule, FSModule, AccountModule):
        registry.register(cls.from_settings())
    return registry


def __getattr__(name: str):
    """Lazy imports so loading one binding does not pull in every client SDK."""
    if name == "EmailModule":
        from .email import EmailModule
        return EmailModule
    if name == "LLMModule":
        from .llm import LLMModule
        return LLMModule
    if name in ("KVModule", "FSModule", "AccountModule"):
        from . import charm
        return getattr(charm, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
