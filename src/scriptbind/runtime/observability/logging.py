"""Structured logging for builtin dispatch.

Loggers are immutable and carry bound fields; every entry is rendered by the
process-wide renderer chosen with ``configure_logging``:

    >>> from scriptbind.runtime.observability import configure_logging, get_logger
    >>> configure_logging("console", "DEBUG")
    >>> log = get_logger("scriptbind.email").for_builtin("email.send")
    >>> log.info("email sent", message_id="4ef9...", recipients=2)
    # => 10:30:45.120 [info] email sent builtin=email.send logger=scriptbind.email message_id=4ef9... module=email recipients=2

``log_context`` adds fields to every entry logged inside its scope, e.g. a
script run id set by the host.
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, TextIO, runtime_checkable

import orjson

Fields = dict[str, Any]

_scoped_fields: ContextVar[Fields] = ContextVar("scriptbind_log_fields", default={})


@dataclass(slots=True, frozen=True)
class LogEntry:
    """One rendered event."""

    timestamp: float
    level: str
    event: str
    fields: Fields

    def iso(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=UTC).isoformat()

    def clock(self) -> str:
        """HH:MM:SS.mmm"""
        return datetime.fromtimestamp(self.timestamp, tz=UTC).strftime("%H:%M:%S.%f")[:-3]


@runtime_checkable
class LogRenderer(Protocol):
    def render(self, entry: LogEntry) -> None: ...


# ─────────────────────────────────────────────────────────────────────────────
# Logger
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class BoundLogger:
    """Logger with bound fields; ``bind``/``unbind`` return new loggers.

    ``min_level`` pins a threshold; when None the configured level applies.
    """

    context: Fields = field(default_factory=dict)
    min_level: int | None = None

    def bind(self, **fields: Any) -> BoundLogger:
        return BoundLogger({**self.context, **fields}, self.min_level)

    def unbind(self, *keys: str) -> BoundLogger:
        return BoundLogger({k: v for k, v in self.context.items() if k not in keys}, self.min_level)

    def for_builtin(self, qualified: str, **fields: Any) -> BoundLogger:
        """Bind ``module`` and ``builtin`` from a qualified name like ``llm.chat``."""
        module, _, _ = qualified.partition(".")
        return self.bind(module=module, builtin=qualified, **fields)

    def log(self, level: int, event: str, **fields: Any) -> None:
        if level < (self.min_level if self.min_level is not None else _min_level.get()):
            return
        merged = {**_scoped_fields.get(), **self.context, **fields}
        entry = LogEntry(time.time(), logging.getLevelName(level).lower(), event, merged)
        _current_renderer().render(entry)

    def debug(self, event: str, **fields: Any) -> None:
        self.log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self.log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self.log(logging.WARNING, event, **fields)

    def error(self, event: str, **fields: Any) -> None:
        self.log(logging.ERROR, event, **fields)

    def exception(self, event: str, **fields: Any) -> None:
        """``error`` with the active traceback under ``exc_info``."""
        self.log(logging.ERROR, event, exc_info=traceback.format_exc(), **fields)


# ─────────────────────────────────────────────────────────────────────────────
# Renderers
# ─────────────────────────────────────────────────────────────────────────────

_ANSI = {"dim": "\033[2m", "bold": "\033[1m", "key": "\033[36m", "trace": "\033[31m", "reset": "\033[0m"}
_PLAIN = dict.fromkeys(_ANSI, "")
_LEVEL_ANSI = {"debug": "\033[34m", "info": "\033[32m", "warning": "\033[33m", "error": "\033[31m"}


def _console_value(v: Any) -> str:
    if isinstance(v, (bytes, bytearray)):
        # script payloads can be large binary blobs
        return f"<{len(v)} bytes>"
    if isinstance(v, str) and (not v or any(ch.isspace() for ch in v)):
        return repr(v)
    return str(v)


@dataclass(slots=True)
class ConsoleRenderer:
    """``clock [level] event key=value ...`` lines, keys sorted."""

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool | None = None
    show_timestamp: bool = True

    def __post_init__(self) -> None:
        if self.colors is None:
            self.colors = bool(getattr(self.output, "isatty", lambda: False)())

    def render(self, entry: LogEntry) -> None:
        ansi = _ANSI if self.colors else _PLAIN
        lvl = _LEVEL_ANSI.get(entry.level, ansi["dim"]) if self.colors else ""
        head = f"{ansi['dim']}{entry.clock()}{ansi['reset']} " if self.show_timestamp else ""
        line = f"{head}{lvl}[{entry.level}]{ansi['reset']} {ansi['bold']}{entry.event}{ansi['reset']}"
        fields = entry.fields
        for key in sorted(k for k in fields if k != "exc_info"):
            line += f" {ansi['key']}{key}{ansi['reset']}={_console_value(fields[key])}"
        self.output.write(line + "\n")
        if trace := fields.get("exc_info"):
            self.output.write(f"{ansi['trace']}{trace}{ansi['reset']}\n")


@dataclass(slots=True)
class JsonRenderer:
    """One JSON object per line; bytes fields are summarized by length."""

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def render(self, entry: LogEntry) -> None:
        record = {"timestamp": entry.iso(), "level": entry.level, "event": entry.event, **entry.fields}
        line = orjson.dumps(record, default=_json_fallback, option=orjson.OPT_NON_STR_KEYS)
        self.output.write(line.decode() + "\n")


def _json_fallback(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return f"<{len(obj)} bytes>"
    return repr(obj)


@dataclass(slots=True)
class NoOpRenderer:
    """Discards everything."""

    def render(self, entry: LogEntry) -> None:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

_RENDERERS: dict[str, Callable[[TextIO | None, bool | None], LogRenderer]] = {
    "console": lambda out, colors: ConsoleRenderer(output=out or sys.stderr, colors=colors),
    "json": lambda out, colors: JsonRenderer(output=out or sys.stdout),
    "none": lambda out, colors: NoOpRenderer(),
}

_active: ContextVar[LogRenderer | None] = ContextVar("scriptbind_log_renderer", default=None)
_min_level: ContextVar[int] = ContextVar("scriptbind_log_level", default=logging.INFO)


def configure_logging(
    format: str = "console",  # noqa: A002
    level: str | int = "INFO",
    *,
    output: TextIO | None = None,
    colors: bool | None = None,
) -> LogRenderer:
    """Select the renderer (``console``, ``json`` or ``none``) and minimum level."""
    if (factory := _RENDERERS.get(format)) is None:
        raise ValueError(f"Unknown format: {format}. Use one of {', '.join(_RENDERERS)}")
    renderer = factory(output, colors)
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    _min_level.set(level)
    _active.set(renderer)
    return renderer


def configure_from_settings() -> LogRenderer:
    """Configure from ``SCRIPTBIND_LOG_FORMAT``/``SCRIPTBIND_LOG_LEVEL``."""
    from scriptbind.foundation.config import get_settings

    cfg = get_settings().logging
    return configure_logging(cfg.format, cfg.level)


def get_logger(name: str | None = None, **fields: Any) -> BoundLogger:
    """Logger with ``fields`` bound; ``name`` is bound as ``logger``."""
    if name:
        fields["logger"] = name
    return BoundLogger(fields)


def _current_renderer() -> LogRenderer:
    if (renderer := _active.get()) is None:
        renderer = ConsoleRenderer()
        _active.set(renderer)
    return renderer


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Add ``fields`` to every entry logged inside the block."""
    token = _scoped_fields.set({**_scoped_fields.get(), **fields})
    try:
        yield
    finally:
        _scoped_fields.reset(token)
