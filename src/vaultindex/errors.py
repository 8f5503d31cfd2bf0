"""Exception types raised by the vault index."""

from __future__ import annotations

from pathlib import Path


class VaultIndexError(Exception):
    """Base class for every error raised by :mod:`vaultindex`."""


class DocumentReadError(VaultIndexError):
    """A document could not be read from its :class:`~vaultindex.storage.DocumentSource`."""

    def __init__(self, path: Path, reason: BaseException) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class IndexInvariantError(VaultIndexError, AssertionError):
    """The catalog, resolution tables and link graph disagree.

    This always means a bug in the incremental maintenance code; it is never
    caught inside the package.
    """
