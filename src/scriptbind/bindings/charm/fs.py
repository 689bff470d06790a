"""The ``cfs`` script module: the user's files on the charm server.

    load("cfs", "read", "write", "listdir")
    write("notes/today.md", "# hello")
    read("notes/today.md")                   # "# hello"
    listdir("notes", recursive=True, filter=lambda p: p.endswith(".md"))

Files are stored unencrypted.
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Iterator
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, StrictBool

from scriptbind.args import StringOrBytes
from scriptbind.foundation.core import ScriptModule, operation
from scriptbind.foundation.errors import BindingException, FileError, MarshalError, TypeMismatch

from .client import CharmClient
from .common import CharmModule

MODULE_NAME = "cfs"

DIR_CONTENT_TYPE = "application/json"


class FileInfo(BaseModel):
    """Stat record of a remote file or directory."""

    model_config = ConfigDict(extra="ignore")

    name: str
    is_dir: bool = False
    size: int = 0
    mode: int = 0o644
    modtime: str = ""


class DirListing(BaseModel):
    """Server response for a directory path."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    mode: int = 0o755
    modtime: str = ""
    files: list[FileInfo] = Field(default_factory=list)


def is_dir_response(resp: httpx.Response) -> bool:
    return resp.headers.get("content-type", "").split(";")[0].strip() == DIR_CONTENT_TYPE


def parse_listing(resp: httpx.Response, path: str) -> DirListing:
    try:
        return DirListing.model_validate_json(resp.content)
    except ValueError as e:
        raise MarshalError(f"invalid directory listing for {path}: {e}") from e


def file_info(resp: httpx.Response, path: str) -> FileInfo:
    """FileInfo for ``path`` from a GET response."""
    if is_dir_response(resp):
        listing = parse_listing(resp, path)
        return FileInfo(name=listing.name or posixpath.basename(path), is_dir=True,
                        mode=listing.mode, modtime=listing.modtime)
    mode = resp.headers.get("x-file-mode", "")
    return FileInfo(
        name=posixpath.basename(path.rstrip("/")),
        size=len(resp.content),
        mode=int(mode, 8) if mode else 0o644,
        modtime=resp.headers.get("last-modified", ""),
    )


def walk(client: CharmClient, root: str, *, recursive: bool,
         keep: Callable[[str], bool] | None = None) -> Iterator[str]:
    """Yield ``root`` and the paths below it in lexical order.

    A non-recursive walk lists the direct children of ``root`` only. ``keep``
    rejecting a path hides that path but not the entries below it.
    """
    resp = client.fs_get(root)

    def visit(path: str, is_dir: bool, depth: int, listing: DirListing | None) -> Iterator[str]:
        if keep is None or keep(path):
            yield path
        if not is_dir or (depth > 0 and not recursive):
            return
        if listing is None:
            listing = parse_listing(client.fs_get(path), path)
        for entry in sorted(listing.files, key=lambda f: f.name):
            yield from visit(posixpath.join(path, entry.name), entry.is_dir, depth + 1, None)

    is_dir = is_dir_response(resp)
    yield from visit(root, is_dir, 0, parse_listing(resp, root) if is_dir else None)


# ─────────────────────────────────────────────────────────────────────────────
# Parameters
# ─────────────────────────────────────────────────────────────────────────────

class NameParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: StringOrBytes


class WriteParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: StringOrBytes
    content: StringOrBytes


class ListDirParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: StringOrBytes
    recursive: StrictBool = False
    filter: Callable[[str], Any] | None = None


# ─────────────────────────────────────────────────────────────────────────────
# Module
# ─────────────────────────────────────────────────────────────────────────────

class FSModule(CharmModule):
    """The ``cfs`` script module."""

    name: ClassVar[str] = MODULE_NAME

    __slots__ = ()

    def load_module(self) -> ScriptModule:
        return self.common.module({
            "read": self.read,
            "write": self.write,
            "remove": self.remove,
            "stat": self.stat,
            "listdir": self.listdir,
        })

    @operation(NameParams)
    def read(self, params: NameParams) -> str | bytes:
        """File content; text when it is valid UTF-8, bytes otherwise."""
        name = params.name.text
        resp = self.client().fs_get(name)
        if is_dir_response(resp):
            raise FileError(f"is a directory: {name}")
        try:
            return resp.content.decode("utf-8")
        except UnicodeDecodeError:
            return resp.content

    @operation(WriteParams)
    def write(self, params: WriteParams) -> None:
        self.client().fs_put(params.name.text, params.content.data)

    @operation(NameParams)
    def remove(self, params: NameParams) -> None:
        self.client().fs_delete(params.name.text)

    @operation(NameParams)
    def stat(self, params: NameParams) -> dict[str, Any]:
        name = params.name.text
        return file_info(self.client().fs_get(name), name).model_dump()

    @operation(ListDirParams)
    def listdir(self, params: ListDirParams) -> list[str]:
        """Paths under ``path``, the path itself first.

        Raises:
            TypeMismatch: ``filter`` returned something other than a bool
        """
        keep = _checked_filter(params.filter) if params.filter is not None else None
        return list(walk(self.client(), params.path.text, recursive=params.recursive, keep=keep))


def _checked_filter(fn: Callable[[str], Any]) -> Callable[[str], bool]:
    def keep(path: str) -> bool:
        try:
            result = fn(path)
        except BindingException as e:
            raise BindingException(f"filter {path!r}: {e.error.message}", code=e.error.code) from e
        except Exception as e:
            raise BindingException.from_exc(e, context=f"filter {path!r}") from e
        if not isinstance(result, bool):
            raise TypeMismatch(f"filter {path!r}: got {type(result).__name__}, want bool")
        return result

    return keep
