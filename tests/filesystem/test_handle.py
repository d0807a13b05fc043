from __future__ import annotations

import io
import stat
from datetime import datetime, timezone

import pytest

from goblet import File, new_fs

NOW = datetime(2024, 1, 2, tzinfo=timezone.utc)


def _fs():
    files = {
        "/assets": File("/assets", None, stat.S_IFDIR | 0o755, NOW),
        "/assets/a.css": File("/assets/a.css", b"body{}", stat.S_IFREG | 0o644, NOW),
        "/assets/b.js": File("/assets/b.js", b"0123456789", stat.S_IFREG | 0o644, NOW),
        "/assets/img": File("/assets/img", None, stat.S_IFDIR | 0o755, NOW),
    }
    dirs = {"/assets": ["b.js", "missing.png", "a.css", "img"], "/assets/img": []}
    return new_fs(dirs, files)


def test_handle_is_seekable() -> None:
    with _fs().open("/assets/b.js") as handle:
        assert handle.seekable()
        handle.seek(3)
        assert handle.read(4) == b"3456"
        handle.seek(-2, io.SEEK_END)
        assert handle.read() == b"89"
        assert handle.tell() == 10


def test_handle_is_read_only() -> None:
    with _fs().open("/assets/b.js") as handle:
        assert not handle.writable()
        with pytest.raises(io.UnsupportedOperation):
            handle.write(b"x")
        with pytest.raises(io.UnsupportedOperation):
            handle.truncate(0)
    assert _fs().read_file("/assets/b.js") == b"0123456789"


def test_handle_stat_exposes_record() -> None:
    fs = _fs()
    with fs.open("/assets/a.css") as handle:
        assert handle.stat() is fs.file("/assets/a.css")
        assert handle.name == "a.css"
        assert handle.size == 6
        assert handle.modified_at == NOW


def test_readdir_skips_missing_children() -> None:
    with _fs().open("/assets") as handle:
        names = [record.name for record in handle.readdir()]
    assert names == ["b.js", "a.css", "img"]


def test_readdir_with_count_pages_then_raises_eof() -> None:
    with _fs().open("/assets") as handle:
        assert [r.name for r in handle.readdir(2)] == ["b.js", "a.css"]
        assert [r.name for r in handle.readdir(2)] == ["img"]
        with pytest.raises(EOFError):
            handle.readdir(2)
        assert handle.readdir() == []


def test_readdir_on_empty_directory() -> None:
    with _fs().open("/assets/img") as handle:
        assert handle.readdir() == []
        assert handle.read() == b""


def test_readdir_on_regular_file_raises() -> None:
    with _fs().open("/assets/a.css") as handle:
        with pytest.raises(NotADirectoryError):
            handle.readdir()


def test_readdir_through_ignored_prefix() -> None:
    fs = _fs().with_ignored_prefix("/assets")
    with fs.open("/") as handle:
        assert handle.stat().path == "/assets"
        assert len(handle.readdir()) == 3


def test_handles_are_independent() -> None:
    fs = _fs()
    first = fs.open("/assets/b.js")
    second = fs.open("/assets/b.js")
    first.seek(5)
    assert second.read(2) == b"01"
    assert first.read(2) == b"56"
