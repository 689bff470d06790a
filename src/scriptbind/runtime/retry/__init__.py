"""Retry policies for provider calls.

Example:
    >>> from scriptbind.runtime.retry import RetryPolicy, execute_with_retry
    >>>
    >>> policy = RetryPolicy(max_attempts=3)
    >>> resp = execute_with_retry(lambda: client.create_image(**req), policy, "llm.draw")
"""

from .policy import (
    DEFAULT_FATAL,
    NO_RETRY,
    TRANSPORT_EXCEPTIONS,
    RetryPolicy,
    as_transport_error,
    execute_with_retry,
)

__all__ = [
    "RetryPolicy",
    "DEFAULT_FATAL",
    "NO_RETRY",
    "TRANSPORT_EXCEPTIONS",
    "as_transport_error",
    "execute_with_retry",
]
