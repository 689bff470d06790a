"""Tests for ModuleRegistry and default binding registration."""

from __future__ import annotations

import pytest

from scriptbind.bindings import register_defaults
from scriptbind.bindings.email import EmailModule
from scriptbind.foundation.core import Builtin, ScriptModule
from scriptbind.foundation.registry import ModuleRegistry, get_registry, reset_registry, set_registry


def test_register_binding_and_load() -> None:
    registry = ModuleRegistry()
    registry.register(EmailModule.with_config("re_key", "example.com"))

    assert "email" in registry
    assert len(registry) == 1
    send, get_config = registry.load("email", "send", "get_config")
    assert isinstance(send, Builtin)
    assert send.name == "email.send"
    assert get_config()["sender_domain"] == "example.com"


def test_module_built_once() -> None:
    built: list[int] = []

    def loader() -> ScriptModule:
        built.append(1)
        return ScriptModule("demo", {"f": Builtin("demo.f", lambda: 1)})

    registry = ModuleRegistry()
    registry.register(loader, name="demo")
    assert registry["demo"] is registry.get("demo")
    assert len(built) == 1


def test_register_errors() -> None:
    registry = ModuleRegistry()
    registry.register(EmailModule())
    with pytest.raises(ValueError, match="already registered"):
        registry.register(EmailModule())
    with pytest.raises(ValueError, match="explicit name"):
        registry.register(lambda: ScriptModule("x", {}))


def test_load_unknown() -> None:
    registry = ModuleRegistry()
    registry.register(EmailModule())
    with pytest.raises(KeyError, match="unknown module"):
        registry.load("nope", "f")
    with pytest.raises(KeyError, match="no member"):
        registry.load("email", "send", "receive")
    assert registry.get("nope") is None


def test_unregister_and_clear() -> None:
    registry = ModuleRegistry()
    registry.register(EmailModule())
    assert registry.unregister("email")
    assert not registry.unregister("email")
    registry.register(EmailModule())
    registry.clear()
    assert registry.names() == []


def test_global_registry() -> None:
    reg = get_registry()
    assert get_registry() is reg
    custom = ModuleRegistry()
    set_registry(custom)
    assert get_registry() is custom
    reset_registry()
    assert get_registry() is not custom


def test_register_defaults() -> None:
    registry = register_defaults(ModuleRegistry())
    assert registry.names() == ["cacc", "cfs", "ckv", "email", "llm"]
    assert "get_bio" in registry["ckv"]
    assert set(registry["llm"]) >= {"chat", "draw", "message", "set_openai_api_key", "get_config"}
