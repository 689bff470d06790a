"""Shared fixtures: quiet logging, fresh settings, no stray environment, a fake charm server."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import httpx
import orjson
import pytest

from scriptbind.foundation.config import clear_settings_cache
from scriptbind.foundation.registry import reset_registry
from scriptbind.runtime.observability import configure_logging

_ENV_VARS = (
    "RESEND_API_KEY", "RESEND_SENDER_DOMAIN",
    "OPENAI_PROVIDER", "OPENAI_ENDPOINT_URL", "OPENAI_API_KEY", "OPENAI_GPT_MODEL", "OPENAI_DALLE_MODEL",
    "CHARM_HOST", "CHARM_DATA_DIR", "CHARM_IDENTITY_KEY", "CHARM_SSH_PORT", "CHARM_HTTP_PORT",
    "SCRIPTBIND_LOG_LEVEL", "SCRIPTBIND_LOG_FORMAT", "SCRIPTBIND_HTTP_TIMEOUT",
)


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> Iterator[None]:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # keep a developer's .env out of the settings
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    configure_logging("none")
    clear_settings_cache()
    yield
    clear_settings_cache()
    reset_registry()


# ─────────────────────────────────────────────────────────────────────────────
# Charm Server
# ─────────────────────────────────────────────────────────────────────────────

class FakeCharm:
    """In-memory charm server: SSH commands via ``runner``, HTTP via ``transport``.

    Each ``api-auth`` issues a fresh token (``jwt-1``, ``jwt-2``...); the HTTP
    side accepts only ``valid_token`` (the latest one unless a test pins it).
    """

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.bio: dict[str, Any] = {"name": "alice", "id": "user-1"}
        self.keys: list[dict[str, Any]] = [{"key": "ssh-ed25519 AAAA", "created_at": "2024-01-01T00:00:00Z"}]
        self.commands: list[str] = []
        self.requests: list[httpx.Request] = []
        self.tokens = 0
        self.valid_token: str | None = None

    # SSH

    def runner(self, command: str) -> bytes:
        self.commands.append(command)
        if command == "api-auth":
            self.tokens += 1
            return orjson.dumps({"jwt": f"jwt-{self.tokens}", "charm_id": "user-1", "http_scheme": "http"})
        if command == "api-keys":
            return orjson.dumps({"keys": self.keys})
        raise AssertionError(f"unexpected command {command}")

    # HTTP

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        token = self.valid_token or f"jwt-{self.tokens}"
        if request.headers.get("Authorization") != f"Bearer {token}":
            return httpx.Response(401, json={"error": "unauthorized"})
        path = request.url.path
        if path == "/v1/bio":
            if request.method == "POST":
                self.bio["name"] = orjson.loads(request.content)["name"]
            return httpx.Response(200, json=self.bio)
        if path.startswith("/v1/fs/"):
            return self._fs(request, path.removeprefix("/v1/fs/").strip("/"))
        return httpx.Response(404)

    def _fs(self, request: httpx.Request, name: str) -> httpx.Response:
        if request.method == "POST":
            self.files[name] = _multipart_data(request)
            return httpx.Response(200)
        if request.method == "DELETE":
            if self.files.pop(name, None) is None:
                return httpx.Response(404)
            return httpx.Response(200)
        if name in self.files:
            return httpx.Response(200, content=self.files[name], headers={
                "content-type": "application/octet-stream",
                "x-file-mode": "600",
                "last-modified": "Mon, 01 Jan 2024 00:00:00 GMT",
            })
        prefix = f"{name}/" if name else ""
        children: dict[str, bool] = {}
        for path in self.files:
            if path.startswith(prefix):
                head, _, rest = path[len(prefix):].partition("/")
                children[head] = children.get(head, False) or bool(rest)
        if not children:
            return httpx.Response(404)
        listing = {
            "name": name.rpartition("/")[2],
            "mode": 0o755,
            "files": [{"name": n, "is_dir": d, "size": 0 if d else len(self.files[prefix + n])}
                      for n, d in children.items()],
        }
        return httpx.Response(200, json=listing)


def _multipart_data(request: httpx.Request) -> bytes:
    boundary = request.headers["content-type"].partition("boundary=")[2].encode()
    part = request.read().split(b"--" + boundary)[1]
    _, _, data = part.partition(b"\r\n\r\n")
    return data.removesuffix(b"\r\n")


@pytest.fixture
def charm() -> FakeCharm:
    return FakeCharm()
