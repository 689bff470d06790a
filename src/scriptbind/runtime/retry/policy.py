"""Retry policy for provider calls.

Provides the bounded, fail-fast retry loop used by the ``retry`` argument of
the llm builtins. Attempts are immediate (no backoff delay); a cancellation
checkpoint runs before each one.

Optimizations:
- Frozen for immutability and hashability
- Pre-computed disabled state
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated, TypeVar

import httpx
import openai
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_serializer,
    field_validator,
)

from scriptbind.foundation.errors import ErrorCode, TransportError
from scriptbind.runtime.cancel import checkpoint

T = TypeVar("T")

logger = logging.getLogger("scriptbind.retry")

# Provider rejected the request itself; repeating it cannot help
DEFAULT_FATAL: frozenset[ErrorCode] = frozenset({ErrorCode.BAD_REQUEST})

# Failures a provider client raises for the call; other exceptions propagate
TRANSPORT_EXCEPTIONS: tuple[type[Exception], ...] = (openai.OpenAIError, httpx.HTTPError, OSError)


class RetryPolicy(BaseModel):
    """Bounded retry with fail-fast classification.

    Every transport failure is retried until ``max_attempts`` is used up,
    except codes in ``fatal_codes`` which stop immediately.

    Attributes:
        max_attempts: Total attempts including the first (``retry`` argument)
        fatal_codes: Error codes that are never retried
        on_retry: Optional callback ``(attempt, code)`` after a failed attempt

    Example:
        >>> policy = RetryPolicy(max_attempts=3)
        >>> execute_with_retry(lambda: client.create_chat_completion(**req), policy, "llm.chat")
    """

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
        json_schema_extra={
            "title": "Retry Policy",
            "examples": [{"max_attempts": 3, "fatal_codes": ["BAD_REQUEST"]}],
        },
    )

    max_attempts: Annotated[int, Field(ge=1)] = 1
    fatal_codes: frozenset[ErrorCode] = DEFAULT_FATAL
    on_retry: Callable[[int, ErrorCode], None] | None = Field(default=None, exclude=True, repr=False)

    @field_validator("fatal_codes", mode="before")
    @classmethod
    def _normalize_codes(cls, v: frozenset[ErrorCode] | set[str] | list[str] | tuple[str, ...]) -> frozenset[ErrorCode]:
        """Accept strings and convert to ErrorCode enum."""
        if isinstance(v, frozenset) and all(isinstance(c, ErrorCode) for c in v):
            return v
        return frozenset(ErrorCode(c) if isinstance(c, str) else c for c in v)

    @field_serializer("fatal_codes")
    def _serialize_codes(self, v: frozenset[ErrorCode]) -> list[str]:
        return sorted(c.value for c in v)

    @computed_field
    @property
    def is_disabled(self) -> bool:
        """Whether only a single attempt is made."""
        return self.max_attempts == 1

    def should_retry(self, code: ErrorCode, attempts_made: int) -> bool:
        """Whether another attempt follows a failure with ``code``."""
        return attempts_made < self.max_attempts and code not in self.fatal_codes

    def __hash__(self) -> int:
        return hash((self.max_attempts, tuple(sorted(c.value for c in self.fatal_codes))))


NO_RETRY = RetryPolicy()


def as_transport_error(exc: Exception) -> TransportError:
    """Classify a client exception as a TransportError (BAD_REQUEST when fail-fast)."""
    if isinstance(exc, TransportError):
        return exc
    err = TransportError.from_exc(exc)
    err.__cause__ = exc
    return err


def execute_with_retry(operation: Callable[[], T], policy: RetryPolicy, name: str) -> T:
    """Run ``operation`` under ``policy``.

    Exceptions in ``TRANSPORT_EXCEPTIONS`` are converted to ``TransportError``;
    binding errors and any other exception propagate at once.

    Raises:
        TransportError: Last failure once attempts are exhausted or a fatal code was hit
        Cancelled: The active CancelScope was cancelled before an attempt
    """
    attempt = 0
    while True:
        checkpoint()
        attempt += 1
        try:
            return operation()
        except TransportError as e:
            error = e
        except TRANSPORT_EXCEPTIONS as e:
            error = as_transport_error(e)

        code = error.error.code
        if not policy.should_retry(code, attempt):
            if attempt > 1 or code in policy.fatal_codes:
                logger.info(f"[{name}] Giving up after {attempt} attempt(s) (code: {code})")
            raise error

        logger.info(f"[{name}] Retry {attempt}/{policy.max_attempts - 1} (code: {code})")
        if policy.on_retry:
            policy.on_retry(attempt, code)
