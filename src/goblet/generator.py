"""Build asset tables from a directory and render them as a Python module."""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import GeneratorError
from .filesystem import File, clean_path, join_path

log = logging.getLogger(__name__)

DEFAULT_NAME = "Assets"

Tables = Tuple[Dict[str, List[str]], Dict[str, File]]


def _record(key: str, st: os.stat_result, data: Optional[bytes]) -> File:
    return File(
        path=key,
        data=data,
        mode=st.st_mode,
        modified_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
    )


class _Scanner:
    def __init__(
        self,
        expressions: Sequence[re.Pattern[str]],
        ignore_dotfiles: bool,
        exclude_empty_dir: bool,
    ) -> None:
        self.expressions = expressions
        self.ignore_dotfiles = ignore_dotfiles
        self.exclude_empty_dir = exclude_empty_dir
        self.dirs: Dict[str, List[str]] = {}
        self.files: Dict[str, File] = {}

    def _wanted(self, key: str) -> bool:
        if not self.expressions:
            return True
        return any(expr.search(key) for expr in self.expressions)

    def walk(self, path: Path, key: str, is_root: bool = False) -> bool:
        """Record ``path`` and its subtree; return whether it was kept."""
        names: List[str] = []
        try:
            children = sorted(os.scandir(path), key=lambda e: e.name)
        except OSError as exc:
            raise GeneratorError(f"Cannot read directory '{path}': {exc}") from exc
        for entry in children:
            if self.ignore_dotfiles and entry.name.startswith("."):
                log.debug("Skipping dotfile %s", entry.path)
                continue
            child_key = join_path(key, entry.name)
            if entry.is_dir(follow_symlinks=False):
                if self.walk(Path(entry.path), child_key):
                    names.append(entry.name)
                continue
            if not entry.is_file() or not self._wanted(child_key):
                continue
            child_path = Path(entry.path)
            try:
                data = child_path.read_bytes()
                st = child_path.stat()
            except OSError as exc:
                raise GeneratorError(f"Cannot read file '{child_path}': {exc}") from exc
            self.files[child_key] = _record(child_key, st, data)
            names.append(entry.name)

        if not names and self.exclude_empty_dir and not is_root:
            log.debug("Excluding empty directory %s", path)
            return False
        try:
            st = path.stat()
        except OSError as exc:
            raise GeneratorError(f"Cannot stat directory '{path}': {exc}") from exc
        self.dirs[key] = names
        self.files[key] = _record(key, st, None)
        return True


def scan(
    root: str | os.PathLike[str],
    *,
    expressions: Iterable[str] = (),
    ignore_dotfiles: bool = False,
    exclude_empty_dir: bool = False,
) -> Tables:
    """Walk ``root`` and return its ``(dirs, files)`` tables.

    Parameters
    ----------
    root:
        Directory to embed. Table keys are built from it as given.
    expressions:
        Regular expressions; when any are given, only regular files whose
        key matches one of them are kept.
    ignore_dotfiles:
        Skip files and directories whose name starts with a dot.
    exclude_empty_dir:
        Drop directories that end up without kept children.
    """

    root_path = Path(root)
    if not root_path.is_dir():
        raise GeneratorError(f"Source '{root_path}' is not a directory.")
    try:
        compiled = [re.compile(e) for e in expressions]
    except re.error as exc:
        raise GeneratorError(f"Invalid expression: {exc}") from exc

    scanner = _Scanner(compiled, ignore_dotfiles, exclude_empty_dir)
    scanner.walk(root_path, clean_path(root_path.as_posix()), is_root=True)
    log.info("Scanned %s: %d directories, %d entries", root_path, len(scanner.dirs), len(scanner.files))
    return scanner.dirs, scanner.files


def render_module(dirs: Dict[str, List[str]], files: Dict[str, File], name: str = DEFAULT_NAME) -> str:
    """Render the tables as Python source defining ``name`` as a FileSystem."""
    if not name.isidentifier():
        raise GeneratorError(f"'{name}' is not a valid Python identifier.")
    lines = [
        '"""Embedded assets generated by goblet. Do not edit."""',
        "",
        "import datetime",
        "",
        "from goblet import File, new_fs",
        "",
        "dirs = {",
    ]
    for key in sorted(dirs):
        lines.append(f"    {key!r}: {dirs[key]!r},")
    lines.append("}")
    lines.append("")
    lines.append("files = {")
    for key in sorted(files):
        record = files[key]
        lines.append(f"    {key!r}: File(")
        lines.append(f"        path={record.path!r},")
        lines.append(f"        data={record.data!r},")
        lines.append(f"        mode={record.mode:#o},")
        lines.append(f"        modified_at={record.modified_at!r},")
        lines.append("    ),")
    lines.append("}")
    lines.append("")
    lines.append(f"{name} = new_fs(dirs, files)")
    lines.append("")
    return "\n".join(lines)


def generate(
    root: str | os.PathLike[str],
    *,
    out: Optional[Path] = None,
    name: str = DEFAULT_NAME,
    expressions: Iterable[str] = (),
    ignore_dotfiles: bool = False,
    exclude_empty_dir: bool = False,
) -> str:
    """Scan ``root`` and return the rendered module, writing it to ``out`` if given."""
    dirs, files = scan(
        root,
        expressions=expressions,
        ignore_dotfiles=ignore_dotfiles,
        exclude_empty_dir=exclude_empty_dir,
    )
    source = render_module(dirs, files, name=name)
    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(source, encoding="utf-8")
        log.info("Wrote %s (%d bytes)", out, len(source))
    return source
