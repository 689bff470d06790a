"""Per-service binding: configuration, published operations and client cache.

A service module (email, llm, the charm family) holds one ``ModuleBinding``
rather than inheriting from it. The binding owns the module's ``ConfigStore``,
generates ``get_config`` and one ``set_<key>`` builtin per declared key, and
lazily builds the third-party client from the configuration at first use.

Example:
    >>> binding = ModuleBinding("email", ("resend_api_key", "sender_domain"),
    ...                         secret_keys=("resend_api_key",))
    >>> module = binding.register_operations({"send": send})
    >>> sorted(module)
    ['get_config', 'send', 'set_resend_api_key', 'set_sender_domain']
    >>> client = binding.resolve_client(make_client, required=("resend_api_key",))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Generic, TypeVar

from scriptbind.foundation.config import ConfigStore
from scriptbind.foundation.errors import BindingException, ClientUnavailable, MissingConfig, NotConfigured
from scriptbind.runtime.observability import get_logger

from .builtin import Builtin, ScriptFunc, ScriptModule

TClient = TypeVar("TClient")

ConfigValues = dict[str, "str | None"]
ClientFactory = Callable[[ConfigValues], TClient]

DEFAULT_INSTANCE = "default"


def mask_secret(secret: str) -> str:
    """Short display form of a credential."""
    return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else "***"


class ModuleBinding(Generic[TClient]):
    """Configuration-and-client component shared by one script module.

    Attributes:
        name: Module name scripts load (``email``, ``llm``, ``ckv``...)
        config: The module's ConfigStore
        secret_keys: Keys masked in ``get_config`` output
        default_instance: Instance used when ``resolve_instance`` gets ""
    """

    __slots__ = ("name", "config", "secret_keys", "default_instance", "_client", "_instances")

    def __init__(
        self,
        name: str,
        declared: Iterable[str] | ConfigStore[str] = (),
        *,
        secret_keys: Iterable[str] = (),
        default_instance: str = DEFAULT_INSTANCE,
    ) -> None:
        self.name = name
        self.config: ConfigStore[str] = declared if isinstance(declared, ConfigStore) else ConfigStore(declared)
        self.secret_keys = frozenset(secret_keys)
        self.default_instance = default_instance
        self._client: TClient | None = None
        self._instances: dict[str, TClient] = {}

    # ─────────────────────────────────────────────────────────────────
    # Publishing
    # ─────────────────────────────────────────────────────────────────

    def common_operations(self) -> dict[str, Builtin]:
        """``get_config`` plus one setter per config key."""
        ops: dict[str, Builtin] = {"get_config": Builtin(f"{self.name}.get_config", self.get_config)}
        for key in self.config.keys():
            setter = f"set_{key}"
            ops[setter] = self.config.expose_setter(key, name=f"{self.name}.{setter}")
        return ops

    def register_operations(self, table: Mapping[str, ScriptFunc]) -> ScriptModule:
        """Build the script module from the common set and ``table``.

        Raises:
            ValueError: A module operation reuses a common operation name
        """
        members = self.common_operations()
        if clash := sorted(members.keys() & table.keys()):
            raise ValueError(f"module {self.name!r} redefines common operations: {', '.join(clash)}")
        for op, fn in table.items():
            members[op] = fn if isinstance(fn, Builtin) else Builtin(f"{self.name}.{op}", fn)
        return ScriptModule(self.name, members)

    def get_config(self) -> ConfigValues:
        """Resolved configuration as a script record; unset keys are None."""
        out: ConfigValues = {}
        for key in self.config.keys():
            try:
                value = self.config.get(key)
            except NotConfigured:
                out[key] = None
                continue
            out[key] = mask_secret(value) if key in self.secret_keys and value else value
        return out

    # ─────────────────────────────────────────────────────────────────
    # Client Resolution
    # ─────────────────────────────────────────────────────────────────

    def read_config(self, required: Iterable[str] = (), optional: Iterable[str] = ()) -> ConfigValues:
        """Read ``required`` keys (absent or blank fails) and ``optional`` keys (absent is None).

        Raises:
            MissingConfig: Naming the first absent required key
        """
        values: ConfigValues = {}
        for key in required:
            value = self.config.get_or(key, "")
            if not value or not value.strip():
                raise MissingConfig(key)
            values[key] = value
        for key in optional:
            values[key] = self.config.get_or(key, None)  # type: ignore[arg-type]
        return values

    def resolve_client(
        self,
        make: ClientFactory[TClient],
        required: Iterable[str] = (),
        optional: Iterable[str] = (),
    ) -> TClient:
        """Cached client, building it from current configuration on first use."""
        if self._client is None:
            values = self.read_config(required, optional)
            self._client = self._build(make, values)
            get_logger("scriptbind.binding").debug("client created", module=self.name)
        return self._client

    def resolve_instance(self, instance: str, make: Callable[[str], TClient]) -> TClient:
        """Per-instance client, created on first access and cached indefinitely."""
        instance = instance or self.default_instance
        if (client := self._instances.get(instance)) is None:
            client = self._instances[instance] = self._build(lambda _: make(instance), {})
            get_logger("scriptbind.binding").debug("instance created", module=self.name, instance=instance)
        return client

    @staticmethod
    def _build(make: ClientFactory[TClient], values: ConfigValues) -> TClient:
        try:
            return make(values)
        except BindingException:
            raise
        except Exception as e:
            raise ClientUnavailable(f"failed to create client: {e}") from e

    @property
    def client(self) -> TClient | None:
        return self._client

    @property
    def instances(self) -> dict[str, TClient]:
        """Snapshot of cached per-instance clients."""
        return dict(self._instances)

    def set_client(self, client: TClient | None) -> None:
        """Inject a ready client (tests, hosts sharing one client)."""
        self._client = client

    def invalidate_client(self) -> None:
        """Drop cached clients so the next call rebuilds from configuration."""
        self._client = None
        self._instances.clear()

    def drop_instance(self, instance: str) -> TClient | None:
        return self._instances.pop(instance or self.default_instance, None)
