"""Invoke and shape steps shared by provider-backed builtins.

A builtin decodes and validates its arguments, builds the provider request
and resolves the client; ``invoke`` then runs the call under the retry
policy and ``shape`` turns the provider response into the script result:

    >>> resp = invoke(lambda: client.create_chat_completion(**req), name="llm.chat",
    ...               retry=params.retry, allow_error=params.allow_error)
    >>> shape(resp, resp.choices if resp else [], lambda c: c.message.content,
    ...       n=params.n, full_response=params.full_response)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from scriptbind.foundation.errors import TransportError
from scriptbind.io import JsonValue, to_script_value
from scriptbind.runtime.observability import get_logger
from scriptbind.runtime.retry import RetryPolicy, execute_with_retry

T = TypeVar("T")
R = TypeVar("R")


def invoke(call: Callable[[], T], *, name: str, retry: int = 1, allow_error: bool = False) -> T | None:
    """Call the provider with up to ``retry`` attempts.

    With ``allow_error`` a ``TransportError`` becomes ``None``; every other
    error propagates.
    """
    try:
        return execute_with_retry(call, RetryPolicy(max_attempts=retry), name)
    except TransportError as e:
        if not allow_error:
            raise
        get_logger("scriptbind.pipeline").for_builtin(name).info(
            "transport error suppressed", code=e.error.code.value, error=e.error.message)
        return None


def pick(items: Sequence[T], extract: Callable[[T], R], *, n: int) -> R | list[R] | None:
    """Primary content: one value when ``n == 1``, else a list in provider order.

    No items gives ``None``.
    """
    if not items:
        return None
    if n == 1:
        return extract(items[0])
    return [extract(item) for item in items]


def shape(
    response: Any,
    items: Sequence[T],
    extract: Callable[[T], R],
    *,
    n: int,
    full_response: bool = False,
) -> JsonValue | R | list[R]:
    """Script result for ``response``: the whole thing marshalled, or ``pick`` over ``items``."""
    if response is None:
        return None
    if full_response:
        return to_script_value(response)
    return pick(items, extract, n=n)
