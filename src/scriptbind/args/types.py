"""Flexible argument kinds accepted at the script boundary.

Each kind plugs into Pydantic through ``__get_pydantic_core_schema__`` so an
operation's parameter model can declare them like any other field type:

    >>> class Params(BaseModel):
    ...     to: OneOrMany[str]
    ...     body: NullableStringOrBytes = NullableStringOrBytes.null()
    ...     temperature: NumberOrFloat = NumberOrFloat(1.0)

Absence and emptiness are kept apart: a NullableStringOrBytes that was never
given is ``is_null``, one given as ``""`` is not.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any, Generic, TypeVar, get_args

from pydantic_core import core_schema

if TYPE_CHECKING:
    from pydantic import GetCoreSchemaHandler

V = TypeVar("V")

# surrogateescape keeps arbitrary bytes round-trippable through the text view
_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


def _kind(value: object) -> str:
    return "NoneType" if value is None else type(value).__name__


# ─────────────────────────────────────────────────────────────────────────────
# OneOrMany
# ─────────────────────────────────────────────────────────────────────────────

class OneOrMany(Generic[V]):
    """Zero or more values of V, accepted as one value or a list of values.

    Decoding a scalar is the same as decoding a one-element list holding it.
    ``None`` (and absence) decode to the empty state.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[V] = ()) -> None:
        self._items: tuple[V, ...] = tuple(items)

    @classmethod
    def of(cls, value: V | Iterable[V] | None) -> OneOrMany[V]:
        """Normalize without item validation (host-side convenience)."""
        return cls(_as_sequence(value))

    @property
    def is_empty(self) -> bool:
        return not self._items

    def as_list(self) -> list[V]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[V]:
        return iter(self._items)

    def __getitem__(self, index: int) -> V:
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OneOrMany):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"OneOrMany({list(self._items)!r})"

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        args = get_args(source)
        item_schema = handler.generate_schema(args[0]) if args else core_schema.any_schema()
        return core_schema.no_info_before_validator_function(
            _as_sequence,
            core_schema.no_info_after_validator_function(cls, core_schema.list_schema(item_schema)),
            serialization=core_schema.plain_serializer_function_ser_schema(lambda v: list(v)),
        )


def _as_sequence(value: object) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, OneOrMany):
        return value.as_list()
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# ─────────────────────────────────────────────────────────────────────────────
# StringOrBytes / NullableStringOrBytes
# ─────────────────────────────────────────────────────────────────────────────

class StringOrBytes:
    """Text content that may arrive as str or bytes.

    ``text`` is the canonical string view, ``data`` the byte view. Bytes input
    is preserved exactly through both views.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str | bytes = "") -> None:
        if isinstance(value, StringOrBytes):
            value = value.raw
        if not isinstance(value, (str, bytes, bytearray)):
            raise TypeError(f"got {_kind(value)}, want string or bytes")
        self._value: str | bytes | None = bytes(value) if isinstance(value, bytearray) else value

    @property
    def raw(self) -> str | bytes:
        return self._value if self._value is not None else ""

    @property
    def text(self) -> str:
        v = self._value
        if v is None:
            return ""
        return v.decode(_ENCODING, _ERRORS) if isinstance(v, bytes) else v

    @property
    def data(self) -> bytes:
        v = self._value
        if v is None:
            return b""
        return v if isinstance(v, bytes) else v.encode(_ENCODING, _ERRORS)

    def is_blank(self) -> bool:
        return not self.text.strip()

    def __str__(self) -> str:
        return self.text

    def __bool__(self) -> bool:
        return bool(self._value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, StringOrBytes):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    @classmethod
    def _validate(cls, value: object) -> StringOrBytes:
        if isinstance(value, cls):
            return value
        if isinstance(value, StringOrBytes):
            return cls(value.raw)
        if not isinstance(value, (str, bytes, bytearray)):
            raise ValueError(f"got {_kind(value)}, want string or bytes")
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(lambda v: v.raw),
        )


class NullableStringOrBytes(StringOrBytes):
    """StringOrBytes with an explicit absent state.

    ``is_null`` is true only when nothing (or ``None``) was given; an explicit
    empty string is a present, empty value. ``is_null_or_empty()`` collapses
    both for validation convenience.
    """

    __slots__ = ()

    def __init__(self, value: str | bytes | None = None) -> None:
        if value is None:
            self._value = None
        else:
            super().__init__(value)

    @classmethod
    def null(cls) -> NullableStringOrBytes:
        return cls(None)

    @property
    def is_null(self) -> bool:
        return self._value is None

    def is_null_or_empty(self) -> bool:
        return not self._value

    def value_or(self, default: str | None = None) -> str | None:
        """Text view, or ``default`` when absent."""
        return default if self.is_null else self.text

    @classmethod
    def _validate(cls, value: object) -> NullableStringOrBytes:
        if value is None:
            return cls(None)
        return super()._validate(value)  # type: ignore[return-value]

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda v: None if v.is_null else v.raw
            ),
        )


# ─────────────────────────────────────────────────────────────────────────────
# NumberOrFloat
# ─────────────────────────────────────────────────────────────────────────────

class NumberOrFloat:
    """Numeric argument given as int or float, canonicalized to float.

    No range checks happen here; bounds are an operation-level concern.
    """

    __slots__ = ("_value",)

    def __init__(self, value: int | float = 0.0) -> None:
        if isinstance(value, NumberOrFloat):
            value = value.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"got {_kind(value)}, want float or int")
        try:
            self._value = float(value)
        except OverflowError:
            raise ValueError("int too large to convert to float") from None

    @property
    def value(self) -> float:
        return self._value

    def __float__(self) -> float:
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NumberOrFloat):
            return self._value == other._value
        if isinstance(other, (int, float)) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"NumberOrFloat({self._value!r})"

    @classmethod
    def _validate(cls, value: object) -> NumberOrFloat:
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"got {_kind(value)}, want float or int")
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(lambda v: v.value),
        )
