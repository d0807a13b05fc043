from __future__ import annotations

import stat
from datetime import datetime, timezone
from typing import Dict, List

import pytest

from goblet import File, FileSystem, InvalidReceiverError, NotFoundError, new_fs
from goblet.filesystem import join_path

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

RECORDS = [
    File(path="/tmp/test", data=None, mode=stat.S_IFDIR | 0o755, modified_at=NOW),
    File(path="/tmp/test/hoge.txt", data=b"hogehoge", mode=stat.S_IFREG | 0o644, modified_at=NOW),
    File(path="/tmp/test/fuga.txt", data=b"fuga", mode=stat.S_IFREG | 0o644, modified_at=NOW),
]
FILES: Dict[str, File] = {r.path: r for r in RECORDS}
DIRS: Dict[str, List[str]] = {"/tmp/test": ["hoge.txt", "fuga.txt", "not_exists.png"]}


def test_new_fs_has_empty_prefixes() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs == FileSystem(dirs=DIRS, files=FILES, path_prefix="")
    assert fs.path_prefix == ""
    assert fs.ignored_prefix == ""
    assert new_fs(DIRS, FILES) == fs


def test_with_prefix_returns_new_instance() -> None:
    base = new_fs(DIRS, FILES)
    derived = base.with_prefix("/static/")

    assert derived == FileSystem(dirs=DIRS, files=FILES, path_prefix="/static/")
    assert derived != base
    assert base.path_prefix == ""
    # Tables are shared, not copied
    assert derived.dirs is base.dirs
    assert derived.files is base.files


def test_with_ignored_prefix_returns_new_instance() -> None:
    base = new_fs(DIRS, FILES)
    derived = base.with_ignored_prefix("/static/")

    assert derived == FileSystem(dirs=DIRS, files=FILES, ignored_prefix="/static/")
    assert derived != base
    assert base.ignored_prefix == ""
    assert derived.files is base.files


@pytest.mark.parametrize("method", [FileSystem.with_prefix, FileSystem.with_ignored_prefix])
def test_derivation_on_absent_receiver_raises(method) -> None:
    with pytest.raises(InvalidReceiverError):
        method(None, "")


@pytest.mark.parametrize("method", [FileSystem.with_prefix, FileSystem.with_ignored_prefix])
def test_derivation_on_uninitialized_receiver_raises(method) -> None:
    fs = object.__new__(FileSystem)
    with pytest.raises(InvalidReceiverError):
        method(fs, "/static")


def test_resolute_strips_prefix() -> None:
    fs = new_fs(DIRS, FILES).with_prefix("/static")
    assert fs.resolute("/static/tmp/test/fuga.txt") == "/tmp/test/fuga.txt"
    assert fs.read_file(fs.resolute("/static/tmp/test/fuga.txt")) == b"fuga"
    # Paths without the prefix pass through untouched
    assert fs.resolute("/tmp/test/fuga.txt") == "/tmp/test/fuga.txt"


def test_resolute_without_prefix_is_identity() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs.resolute("/static/tmp/test/fuga.txt") == "/static/tmp/test/fuga.txt"
    assert fs.resolute("relative//./path") == "relative//./path"


def test_resolute_joins_ignored_prefix() -> None:
    fs = new_fs(DIRS, FILES).with_ignored_prefix("/static/")
    assert fs.resolute("/tmp/test/fuga.txt") == "/static/tmp/test/fuga.txt"
    assert fs.resolute("/tmp/test/fuga.txt") == join_path("/static/", "/tmp/test/fuga.txt")


def test_resolute_ignored_prefix_normalizes_dot_segments() -> None:
    fs = new_fs(DIRS, FILES).with_ignored_prefix("/tmp")
    assert fs.resolute("//test/./sub/../hoge.txt") == "/tmp/test/hoge.txt"
    assert fs.read_file("/test/hoge.txt") == b"hogehoge"
    # ".." stops at the root
    assert fs.resolute("/../../../etc/passwd") == "/etc/passwd"


@pytest.mark.parametrize(
    "elements, expected",
    [
        (("/static/", "/tmp/test"), "/static/tmp/test"),
        (("a", "b/../c"), "a/c"),
        (("", "/x//y/"), "/x/y"),
        (("", ""), ""),
        (("/", ".."), "/"),
        (("..", "a"), "../a"),
    ],
)
def test_join_path(elements, expected) -> None:
    assert join_path(*elements) == expected


def test_exists() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs.exists("/tmp/test/hoge.txt") is True
    assert fs.exists("/tmp/test") is True
    assert fs.exists("/tmp/test/notexists.txt") is False
    assert fs.exists("/tmp/test/not_exists.png") is False


def test_open() -> None:
    fs = new_fs(DIRS, FILES)
    with fs.open("/tmp/test/hoge.txt") as handle:
        assert handle.read() == b"hogehoge"
        assert handle.modified_at == NOW

    with pytest.raises(NotFoundError):
        fs.open("/tmp/test/notexists.txt")


def test_file_returns_stored_record() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs.file("/tmp/test/hoge.txt") is FILES["/tmp/test/hoge.txt"]

    with pytest.raises(NotFoundError) as excinfo:
        fs.file("/tmp/test/notexists.txt")
    assert excinfo.value.filename == "/tmp/test/notexists.txt"


def test_not_found_is_a_file_not_found_error() -> None:
    fs = new_fs(DIRS, FILES).with_prefix("/static")
    with pytest.raises(FileNotFoundError) as excinfo:
        fs.read_file("/static/missing")
    assert excinfo.value.filename == "/missing"


def test_read_file() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs.read_file("/tmp/test/hoge.txt") == b"hogehoge"
    assert fs.read_file("/tmp/test") == b""

    with pytest.raises(NotFoundError):
        fs.read_file("/tmp/test/notexists.txt")


def test_read_dir_preserves_listing_order() -> None:
    fs = new_fs(DIRS, FILES)
    assert fs.read_dir("/tmp/test") == ["hoge.txt", "fuga.txt", "not_exists.png"]

    with pytest.raises(NotFoundError):
        fs.read_dir("/tmp/test/notexists")
    with pytest.raises(NotFoundError):
        fs.read_dir("/tmp/test/hoge.txt")


def test_read_dir_result_does_not_alias_table() -> None:
    fs = new_fs(DIRS, FILES)
    names = fs.read_dir("/tmp/test")
    names.append("extra")
    assert DIRS["/tmp/test"] == ["hoge.txt", "fuga.txt", "not_exists.png"]


@pytest.mark.parametrize("path", ["/tmp/test/hoge.txt", "/tmp/test", "/nope", "/tmp/test/not_exists.png"])
def test_lookups_agree_with_exists(path: str) -> None:
    fs = new_fs(DIRS, FILES)
    if fs.exists(path):
        fs.open(path).close()
        fs.file(path)
        fs.read_file(path)
    else:
        for op in (fs.open, fs.file, fs.read_file):
            with pytest.raises(NotFoundError):
                op(path)


def test_file_properties() -> None:
    hoge = FILES["/tmp/test/hoge.txt"]
    directory = FILES["/tmp/test"]
    assert hoge.name == "hoge.txt"
    assert hoge.size == 8
    assert not hoge.is_dir
    assert directory.name == "test"
    assert directory.size == 0
    assert directory.is_dir
