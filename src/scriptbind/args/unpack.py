"""Positional/keyword argument unpacking against a parameter model.

Mirrors the calling convention of a script host's builtins: positional
arguments fill the model's fields in declaration order, keywords fill them by
name, required fields are the ones without a default. Every failure is an
ArgumentError naming the offending parameter.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from scriptbind.foundation.errors import ArgumentError

TModel = TypeVar("TModel", bound=BaseModel)


def _describe(err: Mapping[str, object]) -> tuple[str, str]:
    """Extract (parameter, reason) from a pydantic error entry."""
    loc = err.get("loc") or ()
    param = str(loc[0]) if loc else ""
    if err.get("type") == "missing":
        return param, "missing argument"
    msg = str(err.get("msg", "invalid value"))
    # pydantic prefixes custom ValueErrors
    return param, msg.removeprefix("Value error, ")


def format_validation_error(exc: PydanticValidationError) -> str:
    """Render the first pydantic error the way a script builtin reports it."""
    errors = exc.errors()
    if not errors:
        return "invalid arguments"
    param, reason = _describe(errors[0])
    if not param:
        return reason
    return f"{reason} for {param}" if reason == "missing argument" else f"for parameter {param}: {reason}"


def unpack_args(
    fn_name: str,
    args: Sequence[object],
    kwargs: Mapping[str, object],
    schema: type[TModel],
) -> TModel:
    """Bind script arguments to ``schema`` and validate them.

    Args:
        fn_name: Builtin name used in error messages
        args: Positional arguments in call order
        kwargs: Keyword arguments
        schema: Parameter model; field order defines positional order and
            field aliases (e.g. ``from``) are the script-visible names

    Raises:
        ArgumentError: Arity, unknown/duplicate keyword, missing required or
            type-incompatible argument.
    """
    names = [f.alias or n for n, f in schema.model_fields.items()]
    if len(args) > len(names):
        raise ArgumentError(
            f"got {len(args)} positional arguments, want at most {len(names)}",
            operation=fn_name,
        )

    bound: dict[str, object] = dict(zip(names, args))
    for key, value in kwargs.items():
        if key not in names:
            raise ArgumentError(f"unexpected keyword argument {key}", operation=fn_name)
        if key in bound:
            raise ArgumentError(f"got multiple values for parameter {key}", operation=fn_name)
        bound[key] = value

    try:
        return schema.model_validate(bound)
    except PydanticValidationError as e:
        raise ArgumentError(format_validation_error(e), operation=fn_name) from e
