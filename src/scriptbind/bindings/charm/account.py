"""The ``cacc`` script module: the charm account behind the identity key."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from scriptbind.args import StringOrBytes
from scriptbind.foundation.core import ScriptModule, operation
from scriptbind.foundation.errors import ValidationError

from .common import CharmModule, NoParams

MODULE_NAME = "cacc"


class NameParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: StringOrBytes


class AccountModule(CharmModule):
    """The ``cacc`` script module.

    Example:
        >>> acc = AccountModule.from_settings().load_module()
        >>> acc["set_username"]("alice")["name"]
        'alice'
    """

    name: ClassVar[str] = MODULE_NAME

    __slots__ = ()

    def load_module(self) -> ScriptModule:
        return self.common.module({
            "get_username": self.get_username,
            "set_username": self.set_username,
            "get_host": self.get_host,
            "get_userid": self.get_userid,
            "get_key_files": self.get_key_files,
            "get_keys": self.get_keys,
        })

    @operation(NoParams)
    def get_username(self, params: NoParams) -> str:
        return self.client().bio().get("name") or ""

    @operation(NameParams)
    def set_username(self, params: NameParams) -> dict[str, Any]:
        """Rename the account; returns the updated record."""
        name = params.name.text.strip()
        if not name:
            raise ValidationError("name must be non-blank")
        return self.client().set_name(name)

    @operation(NoParams)
    def get_host(self, params: NoParams) -> str:
        return self.common.config().host

    @operation(NoParams)
    def get_userid(self, params: NoParams) -> str:
        return self.client().id()

    @operation(NoParams)
    def get_key_files(self, params: NoParams) -> list[str]:
        """Local identity key files that exist."""
        return [str(p) for p in self.common.config().identity_files]

    @operation(NoParams)
    def get_keys(self, params: NoParams) -> list[dict[str, Any]]:
        """Public keys linked to the account."""
        return self.client().authorized_keys()
