"""Configuration and client shared by the charm modules (ckv, cfs, cacc).

Each charm module holds a ``CharmCommon``: the ``ModuleBinding`` with the five
connection keys, the lazily created ``CharmClient`` and ``get_bio``. An unset
or blank key falls back to the ``CHARM_*`` settings, then to the charm
defaults.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar, Self

import httpx
from pydantic import BaseModel, ConfigDict

from scriptbind.foundation.config import ConfigStore, Producer, get_settings
from scriptbind.foundation.core import ConfigValues, ModuleBinding, ScriptFunc, ScriptModule, operation
from scriptbind.foundation.errors import ClientUnavailable

from .client import (
    DEFAULT_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_SSH_PORT,
    CharmClient,
    CharmConfig,
    CommandRunner,
    default_data_dir,
)

CONFIG_KEYS = ("host", "data_dir", "key_file", "ssh_port", "http_port")

# config key -> CharmSettings field
_SETTINGS_FIELDS = {
    "host": "host",
    "data_dir": "data_dir",
    "key_file": "identity_key",
    "ssh_port": "ssh_port",
    "http_port": "http_port",
}


def _port(key: str, raw: str | None, default: int) -> int:
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError:
        raise ClientUnavailable(f"invalid {key}: {raw!r}") from None
    if not 0 < port < 65536:
        raise ClientUnavailable(f"invalid {key}: {port} out of range")
    return port


def charm_config(values: ConfigValues) -> CharmConfig:
    """CharmConfig from module values; blanks fall back to settings, then defaults."""
    env = get_settings().charm

    def pick(key: str) -> str:
        value = (values.get(key) or "").strip()
        return value or getattr(env, _SETTINGS_FIELDS[key]).strip()

    host = pick("host") or DEFAULT_HOST
    data_dir = Path(pick("data_dir")).expanduser() if pick("data_dir") else default_data_dir(host)
    key_file = Path(k).expanduser() if (k := pick("key_file")) else None
    return CharmConfig(
        host=host,
        data_dir=data_dir,
        key_file=key_file,
        ssh_port=_port("ssh_port", pick("ssh_port"), DEFAULT_SSH_PORT),
        http_port=_port("http_port", pick("http_port"), DEFAULT_HTTP_PORT),
    )


class NoParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CharmCommon:
    """Connection config, cached client and ``get_bio`` for one charm module.

    Attributes:
        binding: ModuleBinding named after the owning module
    """

    __slots__ = ("binding", "_runner", "_transport")

    def __init__(
        self,
        name: str,
        store: ConfigStore[str] | None = None,
        *,
        runner: CommandRunner | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.binding: ModuleBinding[CharmClient] = ModuleBinding(
            name, store if store is not None else ConfigStore(CONFIG_KEYS))
        self._runner = runner
        self._transport = transport

    def client(self) -> CharmClient:
        timeout = get_settings().http.timeout
        return self.binding.resolve_client(
            lambda values: CharmClient(charm_config(values), runner=self._runner,
                                       transport=self._transport, timeout=timeout),
            optional=CONFIG_KEYS,
        )

    def config(self) -> CharmConfig:
        """Connection parameters as the next client would see them."""
        return charm_config(self.binding.read_config(optional=CONFIG_KEYS))

    def get_config(self) -> ConfigValues:
        return self.binding.get_config()

    @operation(NoParams)
    def get_bio(self, params: NoParams) -> dict[str, Any]:
        """Account record of the authenticated user."""
        return self.client().bio()

    def module(self, table: Mapping[str, ScriptFunc]) -> ScriptModule:
        """Script module with the common charm operations plus ``table``."""
        return self.binding.register_operations({"get_bio": self.get_bio, **table})


class CharmModule:
    """Base of the charm modules: the four constructor styles over ``CharmCommon``."""

    name: ClassVar[str]
    CONFIG_KEYS: ClassVar[tuple[str, ...]] = CONFIG_KEYS

    __slots__ = ("common",)

    def __init__(self, store: ConfigStore[str] | None = None, **kw: Any) -> None:
        self.common = CharmCommon(self.name, store, **kw)

    @classmethod
    def with_config(
        cls,
        host: str = "",
        data_dir: str = "",
        key_file: str = "",
        ssh_port: int | str = "",
        http_port: int | str = "",
        **kw: Any,
    ) -> Self:
        values = dict(zip(CONFIG_KEYS, (host, data_dir, key_file, str(ssh_port or ""), str(http_port or ""))))
        return cls(ConfigStore.from_values(values, CONFIG_KEYS), **kw)

    @classmethod
    def with_getters(
        cls,
        host: Producer[str],
        data_dir: Producer[str],
        key_file: Producer[str],
        ssh_port: Producer[str],
        http_port: Producer[str],
        **kw: Any,
    ) -> Self:
        producers = dict(zip(CONFIG_KEYS, (host, data_dir, key_file, ssh_port, http_port)))
        return cls(ConfigStore.from_producers(producers, CONFIG_KEYS), **kw)

    @classmethod
    def from_settings(cls, **kw: Any) -> Self:
        """Read ``CHARM_*`` variables through the cached settings."""
        getters = [_settings_getter(_SETTINGS_FIELDS[key]) for key in CONFIG_KEYS]
        return cls.with_getters(*getters, **kw)

    @property
    def binding(self) -> ModuleBinding[CharmClient]:
        return self.common.binding

    def get_config(self) -> ConfigValues:
        return self.common.get_config()

    def get_bio(self) -> dict[str, Any]:
        return self.common.get_bio()

    def client(self) -> CharmClient:
        return self.common.client()


def _settings_getter(field: str) -> Producer[str]:
    return lambda: getattr(get_settings().charm, field)


__all__ = [
    "CONFIG_KEYS",
    "CharmCommon",
    "CharmModule",
    "NoParams",
    "charm_config",
]
