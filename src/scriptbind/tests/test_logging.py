"""Tests for structured logging."""

from __future__ import annotations

import io
import logging

import orjson
import pytest

from scriptbind.foundation.core import Builtin
from scriptbind.foundation.errors import ValidationError
from scriptbind.runtime.observability import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    NoOpRenderer,
    configure_logging,
    get_logger,
    log_context,
)


def test_bind_is_immutable() -> None:
    log = get_logger("scriptbind.test", module="email")
    bound = log.bind(operation="send")
    assert log.context == {"module": "email", "logger": "scriptbind.test"}
    assert bound.context["operation"] == "send"
    assert "operation" not in bound.unbind("operation").context
    builtin = log.for_builtin("llm.chat", attempt=1)
    assert builtin.context["module"] == "llm"
    assert builtin.context["builtin"] == "llm.chat"


def test_json_renderer() -> None:
    out = io.StringIO()
    configure_logging("json", "DEBUG", output=out)
    get_logger("scriptbind.test").info("email sent", message_id="abc", recipients=2)

    entry = orjson.loads(out.getvalue())
    assert entry["event"] == "email sent"
    assert entry["level"] == "info"
    assert entry["message_id"] == "abc"
    assert entry["recipients"] == 2
    assert entry["logger"] == "scriptbind.test"


def test_console_renderer() -> None:
    out = io.StringIO()
    configure_logging("console", "INFO", output=out, colors=False)
    get_logger().warning("retrying", attempt=2, error="read timed out", payload=b"abc")
    line = out.getvalue().strip()
    assert "[warning] retrying" in line
    assert "attempt=2" in line
    assert "error='read timed out'" in line
    assert "payload=<3 bytes>" in line


def test_level_filter() -> None:
    out = io.StringIO()
    configure_logging("json", "WARNING", output=out)
    log = get_logger("x")
    log.info("hidden")
    log.error("shown")
    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    assert orjson.loads(lines[0])["event"] == "shown"


def test_log_context_scopes_fields() -> None:
    out = io.StringIO()
    configure_logging("json", output=out)
    log = get_logger("x")
    with log_context(request_id="r1"):
        log.info("inside")
    log.info("outside")
    inside, outside = (orjson.loads(line) for line in out.getvalue().splitlines())
    assert inside["request_id"] == "r1"
    assert "request_id" not in outside


def test_unknown_format() -> None:
    with pytest.raises(ValueError, match="Unknown format"):
        configure_logging("xml")


def test_noop_renderer() -> None:
    assert isinstance(configure_logging("none"), NoOpRenderer)
    get_logger("x").error("nothing happens")


def test_builtin_failures_logged() -> None:
    out = io.StringIO()
    configure_logging("json", "DEBUG", output=out)

    def fail() -> None:
        raise ValidationError("to must be set and non-empty")

    with pytest.raises(ValidationError):
        Builtin("email.send", fail)()
    entry = orjson.loads(out.getvalue().splitlines()[-1])
    assert entry["event"] == "builtin failed"
    assert entry["builtin"] == "email.send"
    assert entry["module"] == "email"
    assert entry["code"] == "VALIDATION_ERROR"


def test_renderers_are_protocol_instances() -> None:
    from scriptbind.runtime.observability import LogRenderer

    for r in (ConsoleRenderer(output=io.StringIO()), JsonRenderer(output=io.StringIO()), NoOpRenderer()):
        assert isinstance(r, LogRenderer)


def test_level_applies_to_existing_loggers() -> None:
    out = io.StringIO()
    log = get_logger("early")
    configure_logging("json", "DEBUG", output=out)
    log.debug("visible")
    BoundLogger(min_level=logging.ERROR).info("hidden")
    assert [orjson.loads(line)["event"] for line in out.getvalue().splitlines()] == ["visible"]
