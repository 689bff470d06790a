"""Script-callable builtins and the module namespace they are published in.

A ``Builtin`` is what the script host binds to a name: it takes positional
and keyword script values and returns a script value. Every exception leaving
it is a ``BindingException`` carrying the builtin's qualified name, so scripts
see a single error family regardless of which client failed.

``operation`` turns a method taking a typed parameter model into such a
callable, the same way ``@tool`` derives a tool from a typed function:

    >>> class SendParams(BaseModel):
    ...     subject: StringOrBytes
    ...
    >>> class EmailModule:
    ...     @operation(SendParams)
    ...     def send(self, params: SendParams) -> str:
    ...         ...
    >>> EmailModule().send("hello")   # positional -> subject
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from functools import wraps
from typing import Any, Generic, TypeVar, overload

from pydantic import BaseModel

from scriptbind.args import unpack_args
from scriptbind.foundation.errors import BindingException
from scriptbind.runtime.observability import get_logger

TModel = TypeVar("TModel", bound=BaseModel)
TOwner = TypeVar("TOwner")

ScriptFunc = Callable[..., Any]


class Builtin:
    """Named script callable with error normalization.

    Attributes:
        name: Qualified name shown in errors (e.g. ``email.send``)
    """

    __slots__ = ("name", "_fn")

    def __init__(self, name: str, fn: ScriptFunc) -> None:
        self.name = name
        self._fn = fn

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return self._fn(*args, **kwargs)
        except BindingException as e:
            e.with_operation(self.name)
            get_logger("scriptbind.dispatch").for_builtin(self.name).debug(
                "builtin failed", code=e.error.code.value, error=e.error.message)
            raise
        except Exception as e:
            wrapped = BindingException.from_exc(e, self.name)
            get_logger("scriptbind.dispatch").for_builtin(self.name).warning(
                "builtin raised foreign error", code=wrapped.error.code.value,
                error=wrapped.error.message, exc_type=type(e).__name__)
            raise wrapped from e

    def __repr__(self) -> str:
        return f"<builtin {self.name}>"


class ScriptModule(Mapping[str, Builtin]):
    """Immutable namespace of builtins published under one module name.

    Supports mapping access (``module["send"]``) and attribute access
    (``module.send``), so hosts can splice it into a script's globals or
    resolve ``load("email", "send")`` style imports.
    """

    __slots__ = ("name", "_members")

    def __init__(self, name: str, members: Mapping[str, Builtin]) -> None:
        self.name = name
        self._members = dict(members)

    def __getitem__(self, key: str) -> Builtin:
        return self._members[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __getattr__(self, key: str) -> Builtin:
        try:
            return self._members[key]
        except KeyError:
            raise AttributeError(f"module {self.name!r} has no member {key!r}") from None

    def __repr__(self) -> str:
        return f"<module {self.name} [{', '.join(sorted(self._members))}]>"


# ─────────────────────────────────────────────────────────────────────────────
# @operation
# ─────────────────────────────────────────────────────────────────────────────

class Operation(Generic[TOwner, TModel]):
    """Descriptor binding a typed handler to the script calling convention."""

    __slots__ = ("schema", "handler", "name")

    def __init__(self, schema: type[TModel], handler: Callable[[TOwner, TModel], Any]) -> None:
        self.schema = schema
        self.handler = handler
        self.name = handler.__name__

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @overload
    def __get__(self, obj: None, owner: type) -> Operation[TOwner, TModel]: ...
    @overload
    def __get__(self, obj: TOwner, owner: type) -> ScriptFunc: ...

    def __get__(self, obj: TOwner | None, owner: type) -> Operation[TOwner, TModel] | ScriptFunc:
        if obj is None:
            return self
        handler, schema, name = self.handler, self.schema, self.name

        @wraps(handler)
        def call(*args: Any, **kwargs: Any) -> Any:
            params = unpack_args(name, args, kwargs, schema)
            return handler(obj, params)

        return call


def operation(schema: type[TModel]) -> Callable[[Callable[[TOwner, TModel], Any]], Operation[TOwner, TModel]]:
    """Decorate ``handler(self, params)`` as a script operation taking ``schema`` arguments."""

    def decorator(handler: Callable[[TOwner, TModel], Any]) -> Operation[TOwner, TModel]:
        return Operation(schema, handler)

    return decorator
