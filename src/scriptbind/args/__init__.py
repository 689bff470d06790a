"""Argument adapters: flexible script-level shapes decoded into canonical host values."""

from .types import NullableStringOrBytes, NumberOrFloat, OneOrMany, StringOrBytes
from .unpack import format_validation_error, unpack_args

__all__ = [
    "OneOrMany",
    "StringOrBytes",
    "NullableStringOrBytes",
    "NumberOrFloat",
    "unpack_args",
    "format_validation_error",
]
