"""Host-driven cancellation for blocking builtin calls.

Script calls block while the provider answers, so cancellation is
cooperative: the host opens a ``CancelScope`` around script execution (or
cancels it from another thread), and the retry loop calls ``checkpoint()``
before every attempt.

Example:
    >>> with CancelScope(timeout=30.0) as scope:
    ...     run_script(source)            # host entry point
    >>> scope.cancel_called
    False
"""

from __future__ import annotations

import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from scriptbind.foundation.errors import Cancelled

if TYPE_CHECKING:
    from types import TracebackType

_current: ContextVar[CancelScope | None] = ContextVar("cancel_scope", default=None)


@dataclass(slots=True)
class CancelScope:
    """Cancellation scope with optional timeout.

    Scopes nest: a checkpoint fails if any enclosing scope was cancelled or
    ran past its deadline.
    """

    timeout: float | None = None
    _cancel_called: bool = field(default=False, repr=False)
    _deadline: float | None = field(default=None, repr=False)
    _parent: CancelScope | None = field(default=None, repr=False)
    _token: Token[CancelScope | None] | None = field(default=None, repr=False)

    @property
    def cancel_called(self) -> bool:
        """Whether cancellation was requested or the deadline passed."""
        if not self._cancel_called and self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancel_called = True
        return self._cancel_called

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self) -> None:
        """Request cancellation; the next checkpoint raises."""
        self._cancel_called = True

    def __enter__(self) -> CancelScope:
        if self.timeout is not None:
            self._deadline = time.monotonic() + self.timeout
        self._parent = _current.get()
        self._token = _current.set(self)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None
        # Swallow the Cancelled we raised ourselves
        return isinstance(exc_val, Cancelled) and getattr(exc_val, "scope", None) is self


def current_scope() -> CancelScope | None:
    """Innermost active scope, if any."""
    return _current.get()


def checkpoint() -> None:
    """Cooperative cancellation point.

    Raises:
        Cancelled: An active scope was cancelled or timed out
    """
    scope = _current.get()
    while scope is not None:
        if scope.cancel_called:
            exc = Cancelled("call cancelled" if scope.timeout is None else f"call cancelled after {scope.timeout:g}s")
            exc.scope = scope
            raise exc
        scope = scope._parent
