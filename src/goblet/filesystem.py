"""Read-only in-memory filesystem over pre-baked asset tables."""

from __future__ import annotations

import errno
import io
import logging
import os
import stat
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional

from .exceptions import InvalidReceiverError, NotFoundError

log = logging.getLogger(__name__)


def clean_path(path: str) -> str:
    """Return the shortest equivalent of ``path``.

    Repeated separators are collapsed and ``.``/``..`` segments resolved
    lexically. ``..`` never climbs above the root of an absolute path.
    """

    if not path:
        return "."
    rooted = path.startswith("/")
    parts: List[str] = []
    for part in path.split("/"):
        if part in {"", "."}:
            continue
        if part == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append(part)
            continue
        parts.append(part)
    cleaned = "/".join(parts)
    if rooted:
        return "/" + cleaned
    return cleaned or "."


def join_path(*elements: str) -> str:
    """Join non-empty ``elements`` with ``/`` and clean the result.

    Unlike :func:`posixpath.join`, an absolute element is appended to what
    precedes it instead of replacing it.
    """

    parts = [e for e in elements if e]
    if not parts:
        return ""
    return clean_path("/".join(parts))


@dataclass(frozen=True)
class File:
    """One regular file or directory node of an asset table."""

    path: str
    data: Optional[bytes]
    mode: int
    modified_at: datetime

    @property
    def name(self) -> str:
        if self.path == "/":
            return "/"
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @property
    def size(self) -> int:
        return len(self.data) if self.data is not None else 0

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)


class FileHandle(io.BytesIO):
    """Seekable, read-only stream over a :class:`File` record.

    Directory records additionally support :meth:`readdir`.
    """

    def __init__(self, record: File, fs: "FileSystem") -> None:
        super().__init__(record.data or b"")
        self._record = record
        self._fs = fs
        self._dir_offset = 0

    def writable(self) -> bool:
        return False

    def write(self, data) -> int:  # type: ignore[override]
        raise io.UnsupportedOperation("write")

    def writelines(self, lines) -> None:  # type: ignore[override]
        raise io.UnsupportedOperation("writelines")

    def truncate(self, size: Optional[int] = None) -> int:
        raise io.UnsupportedOperation("truncate")

    def stat(self) -> File:
        return self._record

    @property
    def name(self) -> str:  # type: ignore[override]
        return self._record.name

    @property
    def size(self) -> int:
        return self._record.size

    @property
    def modified_at(self) -> datetime:
        return self._record.modified_at

    def readdir(self, count: int = 0) -> List[File]:
        """Return the records of this directory's children.

        Children listed in the directory table but missing from the file
        table are skipped. With ``count > 0`` at most ``count`` records are
        returned per call and :class:`EOFError` signals the end; otherwise
        every remaining record is returned at once.
        """

        if not self._record.is_dir:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), self._record.path)
        names = self._fs.dirs.get(self._record.path, [])
        entries: List[File] = []
        while self._dir_offset < len(names) and (count <= 0 or len(entries) < count):
            name = names[self._dir_offset]
            self._dir_offset += 1
            child = self._fs.files.get(join_path(self._record.path, name))
            if child is not None:
                entries.append(child)
        if count > 0 and not entries:
            raise EOFError(self._record.path)
        return entries


def _check_receiver(fs: Optional["FileSystem"], operation: str) -> "FileSystem":
    if not isinstance(fs, FileSystem):
        raise InvalidReceiverError(f"{operation} called on {type(fs).__name__}, not a FileSystem")
    if getattr(fs, "dirs", None) is None or getattr(fs, "files", None) is None:
        raise InvalidReceiverError(f"{operation} called on an uninitialized FileSystem")
    return fs


def _not_found(path: str) -> NotFoundError:
    log.debug("Path not found: %s", path)
    return NotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


@dataclass(frozen=True)
class FileSystem:
    """Read-only view over a directory table and a file table.

    The tables are shared by reference between an instance and everything
    derived from it with :meth:`with_prefix` or :meth:`with_ignored_prefix`
    and must not be mutated once handed over.
    """

    dirs: Dict[str, List[str]] = field(repr=False)
    files: Dict[str, File] = field(repr=False)
    path_prefix: str = ""
    ignored_prefix: str = ""

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------
    def with_prefix(self, prefix: str) -> FileSystem:
        """Return a view that strips ``prefix`` from incoming paths."""
        fs = _check_receiver(self, "with_prefix")
        return replace(fs, path_prefix=prefix)

    def with_ignored_prefix(self, prefix: str) -> FileSystem:
        """Return a view that prepends ``prefix`` to incoming paths."""
        fs = _check_receiver(self, "with_ignored_prefix")
        return replace(fs, ignored_prefix=prefix)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def resolute(self, path: str) -> str:
        """Map a caller-supplied path to its table key."""
        if self.path_prefix and path.startswith(self.path_prefix):
            return path[len(self.path_prefix):]
        if self.ignored_prefix:
            return join_path(self.ignored_prefix, path)
        return path

    def exists(self, path: str) -> bool:
        return self.resolute(path) in self.files

    def file(self, path: str) -> File:
        """Return the stored record for ``path`` itself, not a copy."""
        resolved = self.resolute(path)
        record = self.files.get(resolved)
        if record is None:
            raise _not_found(resolved)
        return record

    def open(self, path: str) -> FileHandle:
        return FileHandle(self.file(path), self)

    def read_file(self, path: str) -> bytes:
        return self.file(path).data or b""

    def read_dir(self, path: str) -> List[str]:
        """Return the child names of a directory in stored order.

        Names are not checked against the file table.
        """
        resolved = self.resolute(path)
        names = self.dirs.get(resolved)
        if names is None:
            raise _not_found(resolved)
        return list(names)


def new_fs(dirs: Dict[str, List[str]], files: Dict[str, File]) -> FileSystem:
    return FileSystem(dirs=dirs, files=files)
