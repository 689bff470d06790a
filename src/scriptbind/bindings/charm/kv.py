"""The ``ckv`` script module: a named key-value database per user.

    load("ckv", "get", "set", "get_json", "set_json", "sync")
    set("greeting", "hello")
    set_json("prefs", {"theme": "dark"}, db="settings")
    get("missing")              # ""
    sync()                      # reconcile with the charm server

Each database is a local SQLite file under ``<data_dir>/kv/<name>/``.
Writes bump a sequence number; ``sync`` compares it with the snapshot kept on
the charm server (``kv/<name>.json`` in the user's charm files) and pulls or
pushes whichever side is newer.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from scriptbind.args import StringOrBytes
from scriptbind.foundation.config import ConfigStore
from scriptbind.foundation.core import ScriptModule, operation
from scriptbind.foundation.errors import ArgumentError, ErrorCode, MarshalError, TransportError
from scriptbind.io import decode_json, encode_json
from scriptbind.runtime.observability import get_logger

from .client import CharmClient
from .common import CharmModule, NoParams

MODULE_NAME = "ckv"
DEFAULT_DB = "starcli.kv.user.default"
DB_FILE = "kv.sqlite"

log = get_logger("scriptbind.ckv")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS items (key TEXT PRIMARY KEY, value BLOB NOT NULL);
CREATE TABLE IF NOT EXISTS meta (id INTEGER PRIMARY KEY CHECK (id = 0), seq INTEGER NOT NULL);
INSERT OR IGNORE INTO meta (id, seq) VALUES (0, 0);
"""


def _text(value: bytes) -> str | bytes:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return value


# ─────────────────────────────────────────────────────────────────────────────
# Local Store
# ─────────────────────────────────────────────────────────────────────────────

class Snapshot(BaseModel):
    """Remote copy of one database; values are base64 in JSON."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    seq: int = 0
    items: dict[str, bytes] = Field(default_factory=dict)


class LocalKV:
    """One database backed by a SQLite file."""

    __slots__ = ("name", "path", "_conn")

    def __init__(self, name: str, directory: Path) -> None:
        self.name = name
        directory.mkdir(parents=True, exist_ok=True)
        self.path = directory / DB_FILE
        self._conn = sqlite3.connect(self.path)
        self._conn.executescript(_SCHEMA)

    @property
    def seq(self) -> int:
        return self._conn.execute("SELECT seq FROM meta WHERE id = 0").fetchone()[0]

    def get(self, key: str) -> bytes | None:
        row = self._conn.execute("SELECT value FROM items WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: bytes) -> None:
        with self._conn:
            self._conn.execute("INSERT OR REPLACE INTO items (key, value) VALUES (?, ?)", (key, value))
            self._bump()

    def delete(self, key: str) -> bool:
        with self._conn:
            if self._conn.execute("DELETE FROM items WHERE key = ?", (key,)).rowcount == 0:
                return False
            self._bump()
        return True

    def items(self) -> Iterator[tuple[str, bytes]]:
        yield from self._conn.execute("SELECT key, value FROM items ORDER BY key")

    def snapshot(self) -> Snapshot:
        return Snapshot(seq=self.seq, items=dict(self.items()))

    def restore(self, snap: Snapshot) -> None:
        """Replace contents and sequence with ``snap``."""
        with self._conn:
            self._conn.execute("DELETE FROM items")
            self._conn.executemany("INSERT INTO items (key, value) VALUES (?, ?)", snap.items.items())
            self._conn.execute("UPDATE meta SET seq = ? WHERE id = 0", (snap.seq,))

    def _bump(self) -> None:
        self._conn.execute("UPDATE meta SET seq = seq + 1 WHERE id = 0")

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"LocalKV({self.name!r}, seq={self.seq})"


def snapshot_path(name: str) -> str:
    return f"kv/{name}.json"


def pull_snapshot(client: CharmClient, name: str) -> Snapshot | None:
    """Remote snapshot of ``name``; None when the server has none."""
    try:
        resp = client.fs_get(snapshot_path(name))
    except TransportError as e:
        if e.error.code is ErrorCode.NOT_FOUND:
            return None
        raise
    try:
        return Snapshot.model_validate_json(resp.content)
    except ValueError as e:
        raise MarshalError(f"invalid snapshot for {name}: {e}") from e


def push_snapshot(client: CharmClient, name: str, snap: Snapshot) -> None:
    client.fs_put(snapshot_path(name), snap.model_dump_json().encode())


def sync_db(client: CharmClient, db: LocalKV) -> str:
    """Reconcile ``db`` with its remote snapshot; returns the direction taken."""
    remote = pull_snapshot(client, db.name)
    local_seq = db.seq
    if remote is not None and remote.seq > local_seq:
        db.restore(remote)
        direction = "pull"
    elif remote is None or local_seq > remote.seq:
        push_snapshot(client, db.name, db.snapshot())
        direction = "push"
    else:
        direction = "none"
    log.debug("kv synced", db=db.name, direction=direction, seq=db.seq)
    return direction


# ─────────────────────────────────────────────────────────────────────────────
# Parameters
# ─────────────────────────────────────────────────────────────────────────────

class DBParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db: StringOrBytes = Field(default_factory=StringOrBytes)


class KeyParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: StringOrBytes
    db: StringOrBytes = Field(default_factory=StringOrBytes)


class SetParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: StringOrBytes
    value: StringOrBytes
    db: StringOrBytes = Field(default_factory=StringOrBytes)


class SetJSONParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: StringOrBytes
    value: Any
    db: StringOrBytes = Field(default_factory=StringOrBytes)


# ─────────────────────────────────────────────────────────────────────────────
# Module
# ─────────────────────────────────────────────────────────────────────────────

class KVModule(CharmModule):
    """The ``ckv`` script module.

    Example:
        >>> kv = KVModule.with_config(data_dir="/tmp/charm")
        >>> ckv = kv.load_module()
        >>> ckv["set"]("k", "v"); ckv["get"]("k")
        'v'
    """

    name: ClassVar[str] = MODULE_NAME

    __slots__ = ("_dbs",)

    def __init__(self, store: ConfigStore[str] | None = None, **kw: Any) -> None:
        super().__init__(store, **kw)
        self._dbs: dict[str, LocalKV] = {}

    def load_module(self) -> ScriptModule:
        return self.common.module({
            "list_db": self.list_db,
            "get": self.get,
            "set": self.set,
            "get_json": self.get_json,
            "set_json": self.set_json,
            "delete": self.delete,
            "list": self.list,
            "list_keys": self.list_keys,
            "list_values": self.list_values,
            "sync": self.sync,
            "reset": self.reset,
        })

    def kv_dir(self) -> Path:
        return self.common.config().data_dir / "kv"

    def db_path(self, name: str) -> Path:
        """Directory of database ``name``; names are single path components."""
        if name in (".", "..") or "/" in name or "\\" in name or Path(name).is_absolute():
            raise ArgumentError(f"invalid db name {name!r}")
        return self.kv_dir() / name

    def db(self, name: str = "") -> LocalKV:
        """Open (once) the database ``name``, the default one when empty."""
        name = name or DEFAULT_DB
        if (db := self._dbs.get(name)) is None:
            db = self._dbs[name] = LocalKV(name, self.db_path(name))
            log.debug("kv opened", db=name, path=str(db.path))
        return db

    def close(self) -> None:
        for db in self._dbs.values():
            db.close()
        self._dbs.clear()

    # ─────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────

    @operation(NoParams)
    def list_db(self, params: NoParams) -> list[str]:
        """Database names found locally, sorted."""
        root = self.kv_dir()
        if not root.is_dir():
            return []
        return sorted(p.name for p in root.iterdir() if p.is_dir())

    @operation(KeyParams)
    def get(self, params: KeyParams) -> str | bytes:
        value = self.db(params.db.text).get(params.key.text)
        return "" if value is None else _text(value)

    @operation(SetParams)
    def set(self, params: SetParams) -> None:
        self.db(params.db.text).set(params.key.text, params.value.data)

    @operation(KeyParams)
    def get_json(self, params: KeyParams) -> Any:
        value = self.db(params.db.text).get(params.key.text)
        return None if value is None else decode_json(value.decode("utf-8", "replace"))

    @operation(SetJSONParams)
    def set_json(self, params: SetJSONParams) -> None:
        self.db(params.db.text).set(params.key.text, encode_json(params.value).encode())

    @operation(KeyParams)
    def delete(self, params: KeyParams) -> bool:
        """Remove ``key``; False when it was absent."""
        return self.db(params.db.text).delete(params.key.text)

    @operation(DBParams)
    def list(self, params: DBParams) -> dict[str, str | bytes]:
        return {k: _text(v) for k, v in self.db(params.db.text).items()}

    @operation(DBParams)
    def list_keys(self, params: DBParams) -> list[str]:
        return [k for k, _ in self.db(params.db.text).items()]

    @operation(DBParams)
    def list_values(self, params: DBParams) -> list[str | bytes]:
        return [_text(v) for _, v in self.db(params.db.text).items()]

    @operation(DBParams)
    def sync(self, params: DBParams) -> None:
        """Pull or push the database so local and remote copies match."""
        sync_db(self.client(), self.db(params.db.text))

    @operation(DBParams)
    def reset(self, params: DBParams) -> None:
        """Drop the local copy and rebuild it from the remote snapshot."""
        name = params.db.text or DEFAULT_DB
        path = self.db_path(name) / DB_FILE
        if (db := self._dbs.pop(name, None)) is not None:
            db.close()
        path.unlink(missing_ok=True)
        log.debug("kv reset", db=name)
        self.sync(db=name)
