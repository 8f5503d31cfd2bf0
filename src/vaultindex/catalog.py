"""DocumentCatalog: the canonical collection of indexed documents."""

from __future__ import annotations

from pathlib import PurePath, PurePosixPath
from typing import Iterator
from urllib.parse import quote

from vaultindex.document import Document
from vaultindex.errors import IndexInvariantError

# Characters ``encodeURIComponent`` leaves alone, besides alphanumerics and ``-_.~``
_SEGMENT_SAFE = "!*'()"


def normalise_relative(relative_path: str | PurePath) -> str:
    """Return *relative_path* with ``/`` separators and no leading ``./``."""
    text = str(relative_path).replace("\\", "/")
    return PurePosixPath(text).as_posix()


def escape_segments(text: str) -> str:
    """Percent-escape every ``/``-separated segment of *text*."""
    return "/".join(quote(part, safe=_SEGMENT_SAFE) for part in text.split("/"))


def key_for(relative_path: str | PurePath, extensions: tuple[str, ...] = (".md",)) -> str:
    """Derive the stable, URL-safe key for a vault-relative document path.

    The document extension (matched case-sensitively) is dropped and each
    path segment escaped, so two distinct relative paths never share a key.

    >>> key_for("Projects/My Note.md")
    'Projects/My%20Note'
    """
    text = normalise_relative(relative_path)
    for ext in extensions:
        if text.endswith(ext):
            text = text[: -len(ext)]
            break
    return escape_segments(text)


class DocumentCatalog:
    """Owns every :class:`Document`, keyed by :func:`key_for`.

    Mutated only through :meth:`upsert` and :meth:`remove`; the resolution
    tables and link graph refer to documents by key and look the current
    value up here.
    """

    def __init__(self, extensions: tuple[str, ...] = (".md",)) -> None:
        self.extensions = extensions
        self._documents: dict[str, Document] = {}

    def key_for(self, relative_path: str | PurePath) -> str:
        return key_for(relative_path, self.extensions)

    def upsert(self, relative_path: str | PurePath, document: Document) -> Document | None:
        """Insert or replace the document at *relative_path*; return the previous one."""
        key = self.key_for(relative_path)
        if document.key != key:
            raise IndexInvariantError(
                f"Document key {document.key!r} does not match path key {key!r}"
            )
        previous = self._documents.get(key)
        self._documents[key] = document
        return previous

    def remove(self, relative_path: str | PurePath) -> Document | None:
        """Delete and return the document at *relative_path*, if any."""
        return self._documents.pop(self.key_for(relative_path), None)

    def get(self, key: str) -> Document | None:
        return self._documents.get(key)

    def all(self) -> list[Document]:
        """Every document, in no particular order."""
        return list(self._documents.values())

    def keys(self) -> Iterator[str]:
        return iter(list(self._documents))

    def __contains__(self, key: object) -> bool:
        return key in self._documents

    def __len__(self) -> int:
        return len(self._documents)
