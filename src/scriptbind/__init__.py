"""Scriptbind - External services as builtins for embedded scripts.

Publishes email (Resend), LLM (OpenAI / Azure OpenAI) and Charm (key-value
store, files, account) clients as script modules: named builtins taking
flexible script values, with a small per-module configuration layer.

Quick Start:
    >>> from scriptbind import EmailModule, LLMModule, ModuleRegistry
    >>>
    >>> registry = ModuleRegistry()
    >>> registry.register(EmailModule.from_settings())      # RESEND_* env vars
    >>> registry.register(LLMModule.with_config(api_key="sk-...", gpt_model="gpt-4o-mini"))
    >>>
    >>> chat, message = registry.load("llm", "chat", "message")
    >>> chat(messages=[message(role="system", text="Be terse"), message(text="Hi")])
    'Hello.'

Configuration From Scripts:
    >>> set_key, get_config = registry.load("llm", "set_openai_api_key", "get_config")
    >>> set_key("sk-other")
    >>> get_config()["openai_api_key"]
    'sk-o...ther'

Errors:
    Every builtin raises ``BindingException`` subclasses carrying a
    ``BindingError`` (operation, message, code). ``retry=`` and
    ``allow_error=`` on ``chat``/``draw`` control retries and suppression of
    provider failures.

Cancellation:
    >>> from scriptbind import CancelScope
    >>> with CancelScope(timeout=10):
    ...     chat(text="long task", retry=5)
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core
from .foundation.core import Builtin, ModuleBinding, ScriptModule, mask_secret, operation

# Config
from .foundation.config import ConfigStore, ScriptbindSettings, clear_settings_cache, get_settings

# Errors
from .foundation.errors import (
    ArgumentError,
    BindingError,
    BindingException,
    Cancelled,
    ClientUnavailable,
    ErrorCode,
    FileError,
    MarshalError,
    MissingConfig,
    MissingDomain,
    ModelNotConfigured,
    NotConfigured,
    TransportError,
    TypeMismatch,
    UnsupportedProvider,
    ValidationError,
    classify_exception,
)

# Registry
from .foundation.registry import ModuleRegistry, get_registry, reset_registry, set_registry

# Adapters
from .args import NullableStringOrBytes, NumberOrFloat, OneOrMany, StringOrBytes, unpack_args

# Runtime
from .runtime.cancel import CancelScope, checkpoint
from .runtime.retry import RetryPolicy, execute_with_retry
from .runtime.observability import configure_logging, get_logger, log_context

# Marshalling
from .io import decode_json, encode_json, to_script_value

# Bindings
from .bindings import register_defaults
from .bindings.charm import AccountModule, FSModule, KVModule
from .bindings.email import EmailModule
from .bindings.llm import LLMModule

__all__ = [
    "__version__",
    # Core
    "Builtin", "ScriptModule", "ModuleBinding", "operation", "mask_secret",
    # Config
    "ConfigStore", "ScriptbindSettings", "get_settings", "clear_settings_cache",
    # Errors
    "ErrorCode", "BindingError", "BindingException", "classify_exception",
    "ArgumentError", "TypeMismatch", "NotConfigured", "ClientUnavailable", "MissingConfig",
    "UnsupportedProvider", "ModelNotConfigured", "ValidationError", "MissingDomain",
    "TransportError", "MarshalError", "FileError", "Cancelled",
    # Registry
    "ModuleRegistry", "get_registry", "set_registry", "reset_registry",
    # Adapters
    "OneOrMany", "StringOrBytes", "NullableStringOrBytes", "NumberOrFloat", "unpack_args",
    # Runtime
    "CancelScope", "checkpoint", "RetryPolicy", "execute_with_retry",
    "configure_logging", "get_logger", "log_context",
    # Marshalling
    "to_script_value", "encode_json", "decode_json",
    # Bindings
    "EmailModule", "LLMModule", "KVModule", "FSModule", "AccountModule", "register_defaults",
]
