"""Core dispatch: builtins, script modules and the per-service binding."""

from .binding import DEFAULT_INSTANCE, ClientFactory, ConfigValues, ModuleBinding, mask_secret
from .builtin import Builtin, Operation, ScriptFunc, ScriptModule, operation

__all__ = [
    "Builtin", "ScriptModule", "ScriptFunc", "Operation", "operation",
    "ModuleBinding", "ClientFactory", "ConfigValues", "DEFAULT_INSTANCE", "mask_secret",
]
