"""Central registry of script modules.

Hosts register module loaders by name and resolve script imports through
``load``, which mirrors ``load("email", "send")``: it returns the requested
members of the named module, building the module on first use.

Example:
    >>> registry = ModuleRegistry()
    >>> registry.register(EmailModule.from_settings())
    >>> (send,) = registry.load("email", "send")
    >>> send(subject="hi", body_text="hello", to="bob@example.com", from_id="alice")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Protocol, runtime_checkable

from scriptbind.runtime.observability import get_logger

from .core import Builtin, ScriptModule

ModuleLoader = Callable[[], ScriptModule]


@runtime_checkable
class Loadable(Protocol):
    """Anything publishing a script module (every binding class)."""

    name: str

    def load_module(self) -> ScriptModule: ...


class ModuleRegistry:
    """Name -> script module, with lazily built modules.

    A module is built once, on first ``get``/``load``; ``unregister`` or
    ``clear`` drop it.
    """

    __slots__ = ("_loaders", "_modules")

    def __init__(self) -> None:
        self._loaders: dict[str, ModuleLoader] = {}
        self._modules: dict[str, ScriptModule] = {}

    def register(self, source: Loadable | ModuleLoader, name: str | None = None) -> None:
        """Register a binding instance or a module loader.

        Raises:
            ValueError: Name already registered, or a bare loader given without a name
        """
        if isinstance(source, Loadable):
            name, loader = name or source.name, source.load_module
        elif name is None:
            raise ValueError("module loaders need an explicit name")
        else:
            loader = source
        if name in self._loaders:
            raise ValueError(f"Module '{name}' already registered. Use unregister() first.")
        self._loaders[name] = loader

    def unregister(self, name: str) -> bool:
        """Remove a module by name. Returns True if found."""
        self._modules.pop(name, None)
        return self._loaders.pop(name, None) is not None

    def clear(self) -> None:
        self._loaders.clear()
        self._modules.clear()

    def get(self, name: str) -> ScriptModule | None:
        """Get module by name, building it on first access."""
        if (module := self._modules.get(name)) is not None:
            return module
        if (loader := self._loaders.get(name)) is None:
            return None
        module = self._modules[name] = loader()
        get_logger("scriptbind.registry").debug("module loaded", module=name, members=len(module))
        return module

    def load(self, name: str, *members: str) -> tuple[Builtin, ...]:
        """Resolve ``load(name, *members)``.

        Raises:
            KeyError: Unknown module or member
        """
        module = self[name]
        missing = [m for m in members if m not in module]
        if missing:
            raise KeyError(f"module {name!r} has no member(s): {', '.join(missing)}")
        return tuple(module[m] for m in members)

    def names(self) -> list[str]:
        return sorted(self._loaders)

    def __getitem__(self, name: str) -> ScriptModule:
        """Get module by name, raises KeyError if not found."""
        if (module := self.get(name)) is None:
            raise KeyError(f"unknown module {name!r}")
        return module

    def __contains__(self, name: str) -> bool:
        return name in self._loaders

    def __len__(self) -> int:
        return len(self._loaders)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __repr__(self) -> str:
        return f"ModuleRegistry({self.names()})"


_registry: ModuleRegistry | None = None


def get_registry() -> ModuleRegistry:
    """Get the global module registry instance."""
    global _registry
    if _registry is None:
        _registry = ModuleRegistry()
    return _registry


def set_registry(registry: ModuleRegistry) -> None:
    """Replace the global registry."""
    global _registry
    _registry = registry


def reset_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _registry
    if _registry is not None:
        _registry.clear()
    _registry = None
