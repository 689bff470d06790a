"""Named configuration slots with lazily evaluated producers.

Every binding owns one ``ConfigStore``. A key is either unset or bound to a
producer; ``get`` calls the producer on every read, so a producer that reads
the environment (or the cached settings) tracks changes without rebinding.

Example:
    >>> store = ConfigStore(("api_key", "domain"))
    >>> store.set_value("domain", "example.com")
    >>> store.get("domain")
    'example.com'
    >>> setter = store.expose_setter("api_key")
    >>> setter("re_123")         # script: set_api_key("re_123")
    >>> store.get("api_key")
    're_123'
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from scriptbind.foundation.errors import ArgumentError, NotConfigured, TypeMismatch

if TYPE_CHECKING:
    from scriptbind.foundation.core.builtin import Builtin

T = TypeVar("T")

Producer = Callable[[], T]


class ConfigStore(Generic[T]):
    """Mapping of config key to deferred producer.

    Attributes:
        value_type: Runtime type every value must have; checked by script
            setters since generics are erased at runtime
    """

    __slots__ = ("_declared", "_producers", "value_type")

    def __init__(self, declared: Iterable[str] = (), *, value_type: type[T] = str) -> None:  # type: ignore[assignment]
        self._declared: tuple[str, ...] = tuple(declared)
        self._producers: dict[str, Producer[T] | None] = {}
        self.value_type = value_type

    @classmethod
    def from_values(cls, values: Mapping[str, T], declared: Iterable[str] = (), **kw: Any) -> ConfigStore[T]:
        store: ConfigStore[T] = cls(declared, **kw)
        for key, value in values.items():
            store.set_value(key, value)
        return store

    @classmethod
    def from_producers(cls, producers: Mapping[str, Producer[T]], declared: Iterable[str] = (), **kw: Any) -> ConfigStore[T]:
        store: ConfigStore[T] = cls(declared, **kw)
        for key, producer in producers.items():
            store.set(key, producer)
        return store

    @property
    def declared(self) -> tuple[str, ...]:
        """Keys the owning binding publishes setters for."""
        return self._declared

    def set(self, key: str, producer: Producer[T] | None) -> None:
        """Bind ``key`` to ``producer``, replacing any previous binding."""
        self._producers[key] = producer

    def set_value(self, key: str, value: T) -> None:
        """Bind ``key`` to a constant."""
        self._producers[key] = lambda: value

    def get(self, key: str) -> T:
        """Current value of ``key``.

        Raises:
            NotConfigured: Key never bound or bound to no producer
        """
        producer = self._producers.get(key)
        if producer is None:
            raise NotConfigured(key)
        return producer()

    def get_or(self, key: str, default: T) -> T:
        try:
            return self.get(key)
        except NotConfigured:
            return default

    def keys(self) -> list[str]:
        """Declared keys followed by any extra bound keys, in first-seen order."""
        return list(dict.fromkeys((*self._declared, *self._producers)))

    def __contains__(self, key: object) -> bool:
        return self._producers.get(key) is not None  # type: ignore[call-overload]

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __repr__(self) -> str:
        bound = [k for k in self.keys() if k in self]
        return f"ConfigStore({self.value_type.__name__}, bound={bound})"

    # ─────────────────────────────────────────────────────────────────
    # Script Setters
    # ─────────────────────────────────────────────────────────────────

    def expose_setter(self, key: str, *, name: str | None = None) -> Builtin:
        """Script builtin ``set_<key>(<key>)`` binding a constant value.

        The single argument may be passed positionally or by the keyword
        ``key``. Returns ``None`` to the script.

        Raises (from the builtin):
            ArgumentError: Wrong arity or keyword
            TypeMismatch: Value is not a ``value_type`` instance
        """
        from scriptbind.foundation.core.builtin import Builtin

        want = self.value_type

        def setter(*args: object, **kwargs: object) -> None:
            if len(args) + len(kwargs) != 1:
                raise ArgumentError(f"got {len(args) + len(kwargs)} arguments, want 1")
            if kwargs and key not in kwargs:
                raise ArgumentError(f"unexpected keyword argument {next(iter(kwargs))}")
            value = args[0] if args else kwargs[key]
            if not _is_instance(value, want):
                raise TypeMismatch(f"for parameter {key}: got {type(value).__name__}, want {want.__name__}")
            self.set_value(key, value)  # type: ignore[arg-type]

        return Builtin(name or f"set_{key}", setter)


def _is_instance(value: object, want: type) -> bool:
    # bool is an int subclass but never a valid int config value
    if isinstance(value, bool) and want is not bool:
        return False
    return isinstance(value, want)

