"""Tests for the ckv module: local databases and sync with the charm server."""

from __future__ import annotations

from pathlib import Path

import pytest

from scriptbind.bindings.charm import DEFAULT_DB, KVModule, Snapshot
from scriptbind.foundation.core import ScriptModule
from scriptbind.foundation.errors import ArgumentError, MarshalError

from .conftest import FakeCharm


def ckv(charm: FakeCharm, tmp_path: Path) -> ScriptModule:
    return KVModule.with_config(data_dir=str(tmp_path), runner=charm.runner, transport=charm.transport).load_module()


def snapshot_name(db: str = DEFAULT_DB) -> str:
    return f"kv/{db}.json"


def posts(charm: FakeCharm) -> int:
    return sum(r.method == "POST" for r in charm.requests)


# ═════════════════════════════════════════════════════════════════════════════
# Local Operations
# ═════════════════════════════════════════════════════════════════════════════


def test_set_get(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    assert kv["set"]("greeting", "hello") is None
    assert kv["get"]("greeting") == "hello"
    assert kv["get"]("missing") == ""
    assert (tmp_path / "kv" / DEFAULT_DB / "kv.sqlite").is_file()


def test_local_operations_stay_offline(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("a", "1")
    kv["get"]("a")
    kv["list"]()
    kv["delete"]("a")
    assert charm.commands == []
    assert charm.requests == []


def test_binary_values(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"](b"blob", b"\xff\x00\xfe")
    kv["set"]("text", b"caf\xc3\xa9")
    assert kv["get"]("blob") == b"\xff\x00\xfe"
    assert kv["get"]("text") == "café"


def test_json_values(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set_json"]("prefs", {"theme": "dark", "sizes": [1, 2.5], "on": True})
    assert kv["get_json"]("prefs") == {"theme": "dark", "sizes": [1, 2.5], "on": True}
    assert kv["get"]("prefs") == '{"theme":"dark","sizes":[1,2.5],"on":true}'
    assert kv["get_json"]("missing") is None


def test_get_json_invalid(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("k", "{not json")
    with pytest.raises(MarshalError):
        kv["get_json"]("k")


def test_set_json_unserializable(charm: FakeCharm, tmp_path: Path) -> None:
    with pytest.raises(MarshalError):
        ckv(charm, tmp_path)["set_json"]("k", object())


def test_delete(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("k", "v")
    assert kv["delete"]("k") is True
    assert kv["delete"]("k") is False
    assert kv["get"]("k") == ""


def test_listing_sorted_by_key(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    for key, value in (("b", "2"), ("c", "3"), ("a", "1")):
        kv["set"](key, value)
    assert kv["list"]() == {"a": "1", "b": "2", "c": "3"}
    assert kv["list_keys"]() == ["a", "b", "c"]
    assert kv["list_values"]() == ["1", "2", "3"]


def test_named_databases(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    assert kv["list_db"]() == []
    kv["set"]("k", "default")
    kv["set"]("k", "other", db="settings")
    assert kv["get"]("k") == "default"
    assert kv["get"]("k", "settings") == "other"
    assert kv["list_db"]() == ["settings", DEFAULT_DB]


def test_argument_errors(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    with pytest.raises(ArgumentError, match="missing argument for value"):
        kv["set"]("k")
    with pytest.raises(ArgumentError, match="for parameter key: got int"):
        kv["get"](1)
    with pytest.raises(ArgumentError, match="unexpected keyword argument database"):
        kv["list"](database="x")


@pytest.mark.parametrize("name", ["../../escaped", "..", ".", "a/b", "a\\b", "/abs_target"])
def test_db_name_must_stay_inside_kv_dir(charm: FakeCharm, tmp_path: Path, name: str) -> None:
    kv = ckv(charm, tmp_path / "data")
    with pytest.raises(ArgumentError, match="invalid db name") as exc:
        kv["set"]("k", "v", db=name)
    assert exc.value.error.operation == "ckv.set"
    with pytest.raises(ArgumentError, match="invalid db name"):
        kv["reset"](db=name)
    assert list(tmp_path.rglob("kv.sqlite")) == []
    assert charm.requests == []


# ═════════════════════════════════════════════════════════════════════════════
# Sync
# ═════════════════════════════════════════════════════════════════════════════


def test_sync_pushes_local_changes(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("a", "1")
    kv["set"]("b", b"\x00")
    kv["sync"]()

    assert charm.commands == ["api-auth"]
    remote = Snapshot.model_validate_json(charm.files[snapshot_name()])
    assert remote.seq == 2
    assert remote.items == {"a": b"1", "b": b"\x00"}


def test_sync_pulls_newer_remote(charm: FakeCharm, tmp_path: Path) -> None:
    charm.files[snapshot_name("shared")] = Snapshot(seq=5, items={"x": b"remote"}).model_dump_json().encode()
    kv = ckv(charm, tmp_path)
    kv["set"]("local-only", "1", db="shared")
    kv["sync"](db="shared")
    assert kv["list"](db="shared") == {"x": "remote"}
    assert posts(charm) == 0


def test_sync_noop_when_equal(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("a", "1")
    kv["sync"]()
    kv["sync"]()
    assert posts(charm) == 1


def test_sync_invalid_snapshot(charm: FakeCharm, tmp_path: Path) -> None:
    charm.files[snapshot_name()] = b"not a snapshot"
    with pytest.raises(MarshalError, match="invalid snapshot"):
        ckv(charm, tmp_path)["sync"]()


def test_reset_rebuilds_from_remote(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("kept", "1")
    kv["sync"]()
    kv["set"]("unsynced", "2")

    kv["reset"]()
    assert kv["list"]() == {"kept": "1"}


def test_reset_without_remote(charm: FakeCharm, tmp_path: Path) -> None:
    kv = ckv(charm, tmp_path)
    kv["set"]("k", "v", db="scratch")
    kv["reset"](db="scratch")
    assert kv["list"](db="scratch") == {}
    assert Snapshot.model_validate_json(charm.files[snapshot_name("scratch")]).seq == 0


def test_get_bio(charm: FakeCharm, tmp_path: Path) -> None:
    assert ckv(charm, tmp_path)["get_bio"]() == {"name": "alice", "id": "user-1"}
