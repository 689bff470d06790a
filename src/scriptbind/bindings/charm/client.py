"""Charm Cloud client: SSH handshake for a token, HTTP for bio and files.

Authentication follows the Charm protocol: an SSH session (identity key,
user ``charm``) runs ``api-auth`` and receives a JSON document holding a JWT;
HTTP requests then carry that token. ``api-keys`` lists the keys linked to
the account.

Both transports are injectable: ``runner`` replaces the SSH command runner
and ``transport`` the httpx transport, so tests never open connections.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx
import orjson
import paramiko
from pydantic import BaseModel, ConfigDict, Field

from scriptbind.foundation.errors import ClientUnavailable, TransportError
from scriptbind.runtime.observability import get_logger

DEFAULT_HOST = "cloud.charm.sh"
DEFAULT_SSH_PORT = 35353
DEFAULT_HTTP_PORT = 35354
SSH_USER = "charm"
KEY_FILE_NAMES = ("charm_ed25519", "charm_rsa")

CommandRunner = Callable[[str], bytes]

log = get_logger("scriptbind.charm")


def default_data_dir(host: str) -> Path:
    """``$XDG_DATA_HOME/charm/<host>`` (``~/.local/share`` when unset)."""
    base = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(base) / "charm" / host


class CharmConfig(BaseModel):
    """Resolved connection parameters."""

    model_config = ConfigDict(frozen=True)

    host: str = DEFAULT_HOST
    ssh_port: int = Field(default=DEFAULT_SSH_PORT, gt=0, lt=65536)
    http_port: int = Field(default=DEFAULT_HTTP_PORT, gt=0, lt=65536)
    data_dir: Path
    key_file: Path | None = None

    @property
    def identity_files(self) -> list[Path]:
        """Existing private key files, the configured one first."""
        candidates = [self.key_file] if self.key_file else []
        candidates += [self.data_dir / name for name in KEY_FILE_NAMES]
        return [p for p in dict.fromkeys(candidates) if p.is_file()]


class Auth(BaseModel):
    """``api-auth`` response."""

    model_config = ConfigDict(extra="ignore")

    jwt: str
    id: str = Field(default="", alias="charm_id")
    http_scheme: str = "https"
    public_key: str = ""

    @classmethod
    def parse(cls, raw: bytes) -> Auth:
        data = orjson.loads(raw)
        # older servers send "id" instead of "charm_id"
        if "charm_id" not in data and "id" in data:
            data["charm_id"] = data["id"]
        return cls.model_validate(data)


# ─────────────────────────────────────────────────────────────────────────────
# SSH
# ─────────────────────────────────────────────────────────────────────────────

class SSHRunner:
    """Run one Charm API command per SSH session (paramiko)."""

    __slots__ = ("host", "port", "key_files", "timeout")

    def __init__(self, host: str, port: int, key_files: list[Path], *, timeout: float = 30.0) -> None:
        self.host = host
        self.port = port
        self.key_files = key_files
        self.timeout = timeout

    def __call__(self, command: str) -> bytes:
        if not self.key_files:
            raise ClientUnavailable("no charm identity key found; set key_file or data_dir")
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                self.host, port=self.port, username=SSH_USER,
                key_filename=[str(p) for p in self.key_files],
                look_for_keys=False, allow_agent=False, timeout=self.timeout,
            )
            _, stdout, stderr = client.exec_command(command, timeout=self.timeout)
            out = stdout.read()
            if (status := stdout.channel.recv_exit_status()) != 0:
                err = stderr.read().decode("utf-8", "replace").strip()
                raise TransportError(f"ssh {command} exited with {status}: {err}")
            return out
        except (paramiko.SSHException, OSError) as e:
            raise TransportError.from_exc(e, context=f"ssh {command}") from e
        finally:
            client.close()


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────

class CharmClient:
    """Authenticated access to one Charm server.

    Example:
        >>> cc = CharmClient(CharmConfig(data_dir=Path("~/.local/share/charm/cloud.charm.sh")))
        >>> cc.bio()["name"]
        'alice'
    """

    __slots__ = ("config", "_runner", "_transport", "_timeout", "_auth", "_http")

    def __init__(
        self,
        config: CharmConfig,
        *,
        runner: CommandRunner | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.config = config
        self._runner = runner or SSHRunner(config.host, config.ssh_port, config.identity_files, timeout=timeout)
        self._transport = transport
        self._timeout = timeout
        self._auth: Auth | None = None
        self._http: httpx.Client | None = None

    # Auth

    def command(self, name: str) -> Any:
        """Run an SSH API command and decode its JSON output."""
        raw = self._runner(name)
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise TransportError(f"ssh {name}: invalid response: {e}") from e

    def auth(self, *, refresh: bool = False) -> Auth:
        if self._auth is None or refresh:
            raw = self._runner("api-auth")
            try:
                self._auth = Auth.parse(raw)
            except (orjson.JSONDecodeError, ValueError) as e:
                raise TransportError(f"api-auth: invalid response: {e}") from e
            self.close()
            log.debug("charm authenticated", host=self.config.host, charm_id=self._auth.id)
        return self._auth

    def id(self) -> str:
        return self.auth().id

    def _client(self) -> httpx.Client:
        auth = self.auth()
        if self._http is None:
            self._http = httpx.Client(
                base_url=f"{auth.http_scheme}://{self.config.host}:{self.config.http_port}",
                headers={"Authorization": f"Bearer {auth.jwt}"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http

    def request(self, method: str, path: str, **kw: Any) -> httpx.Response:
        """Authenticated request; an expired token is refreshed once.

        Raises:
            TransportError: Network failure or error status (404 keeps NOT_FOUND)
        """
        try:
            resp = self._client().request(method, path, **kw)
            if resp.status_code == 401:
                self.auth(refresh=True)
                resp = self._client().request(method, path, **kw)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError.from_exc(e, context=f"{method} {path}") from e
        return resp

    # Account

    def bio(self) -> dict[str, Any]:
        return self.request("GET", "/v1/bio").json()

    def set_name(self, name: str) -> dict[str, Any]:
        return self.request("POST", "/v1/bio", json={"name": name}).json()

    def authorized_keys(self) -> list[dict[str, Any]]:
        data = self.command("api-keys")
        return list(data.get("keys") or []) if isinstance(data, dict) else list(data or [])

    def key_files(self) -> list[str]:
        return [str(p) for p in self.config.identity_files]

    def data_path(self) -> Path:
        return self.config.data_dir

    # Files

    @staticmethod
    def fs_path(name: str) -> str:
        return "/v1/fs/" + quote(name.strip("/"), safe="/")

    def fs_get(self, name: str) -> httpx.Response:
        return self.request("GET", self.fs_path(name))

    def fs_put(self, name: str, data: bytes) -> None:
        self.request("POST", self.fs_path(name), files={"data": (Path(name).name or "data", data)})

    def fs_delete(self, name: str) -> None:
        self.request("DELETE", self.fs_path(name))

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def __repr__(self) -> str:
        return f"CharmClient({self.config.host}:{self.config.ssh_port}/{self.config.http_port})"
