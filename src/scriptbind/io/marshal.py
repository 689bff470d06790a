"""Conversion between host structures and script values.

Script values are ``None``, ``bool``, ``int``, ``float``, ``str``, ``bytes``,
``list`` and ``dict``. Provider responses (openai pydantic models, dataclasses,
nested dicts with datetimes) are flattened through one orjson round trip.

Usage:
    >>> to_script_value(chat_completion)["choices"][0]["message"]["content"]
    'Hello!'
    >>> decode_json('{"a": [1, 2]}')
    {'a': [1, 2]}
"""

from __future__ import annotations

import base64
from typing import Any

import orjson
from pydantic import BaseModel

from scriptbind.foundation.errors import MarshalError

JsonValue = None | bool | int | float | str | list["JsonValue"] | dict[str, "JsonValue"]

_OPTIONS = orjson.OPT_NON_STR_KEYS | orjson.OPT_UTC_Z


def _default(obj: Any) -> Any:
    """orjson fallback for types it does not serialize natively."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"type {type(obj).__name__} is not serializable")


def to_script_value(obj: Any) -> JsonValue:
    """Deep-convert ``obj`` into script values.

    Raises:
        MarshalError: Some nested value cannot be serialized
    """
    try:
        return orjson.loads(orjson.dumps(obj, default=_default, option=_OPTIONS))
    except TypeError as e:
        # orjson raises JSONEncodeError, a TypeError subclass
        raise MarshalError(f"cannot convert result: {e}") from e


def encode_json(value: Any) -> str:
    """Script value (or any marshallable structure) to JSON text."""
    try:
        return orjson.dumps(value, default=_default, option=_OPTIONS).decode()
    except TypeError as e:
        raise MarshalError(f"cannot encode value as JSON: {e}") from e


def decode_json(text: str | bytes) -> JsonValue:
    """JSON text to script value; empty text decodes to None.

    Raises:
        MarshalError: Text is not valid JSON
    """
    if not text or not text.strip():
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise MarshalError(f"invalid JSON: {e}") from e
