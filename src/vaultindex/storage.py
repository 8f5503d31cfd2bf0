"""Reading documents from disk and walking the vault tree."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, Iterator, Protocol, runtime_checkable

from vaultindex.errors import DocumentReadError

#: ``include(relative_path, is_dir)`` decides whether the walker descends
#: into a directory or yields a file.
EntryFilter = Callable[[PurePosixPath, bool], bool]


@runtime_checkable
class DocumentSource(Protocol):
    """Synchronous access to a document's raw text and modification time.

    Implementations raise :class:`~vaultindex.errors.DocumentReadError` for
    any failure; the index catches it and keeps its previous state.
    """

    def read_raw_text(self, path: Path) -> str: ...

    def last_modified(self, path: Path) -> datetime: ...


class FileSystemSource:
    """:class:`DocumentSource` backed by the local filesystem (UTF-8)."""

    def read_raw_text(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(Path(path), exc) from exc

    def last_modified(self, path: Path) -> datetime:
        try:
            mtime = Path(path).stat().st_mtime
        except OSError as exc:
            raise DocumentReadError(Path(path), exc) from exc
        return datetime.fromtimestamp(mtime, tz=timezone.utc)


def walk_documents(root: Path, include: EntryFilter) -> Iterator[Path]:
    """Lazily yield every file under *root* accepted by *include*.

    Directories are visited depth-first with entries sorted by name, so two
    walks over the same tree yield the same order.  Symlinked directories are
    not followed.  Unreadable directories are skipped.
    """
    root = Path(root)
    stack: list[Path] = [root]
    while stack:
        directory = stack.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            continue
        subdirs: list[Path] = []
        for entry in entries:
            path = Path(entry.path)
            relative = PurePosixPath(path.relative_to(root).as_posix())
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            if not include(relative, is_dir):
                continue
            if is_dir:
                subdirs.append(path)
            elif entry.is_file():
                yield path
        # reversed so the stack pops subdirectories in name order
        stack.extend(reversed(subdirs))
