"""Keep a :class:`~vaultindex.index.VaultIndex` current with watchdog.

Events are debounced per path: a burst of writes from one editor save is
applied once, after the file has been quiet for
:attr:`VaultEventHandler.DEBOUNCE_SECONDS`.  Directory deletions and moves
are applied at once, to every document below the folder.  Filtering
(hidden entries, non-markdown files, the private state directory) uses the
index's own :class:`~vaultindex.config.IndexConfig`.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from vaultindex.errors import IndexInvariantError

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from vaultindex.index import VaultIndex

logger = logging.getLogger(__name__)

#: ``(kind, path)`` with kind one of ``"added"``, ``"changed"``, ``"removed"``,
#: ``"folder_added"`` or ``"folder_removed"``
Listener = Callable[[str, Path], None]


def _as_path(path: str | bytes) -> Path:
    return Path(path.decode() if isinstance(path, bytes) else path)


@dataclass
class PendingEvent:
    """A document event waiting for its path to settle."""

    kind: str
    path: Path
    timestamp: float


class VaultEventHandler(FileSystemEventHandler):
    """Translates filesystem events into index notifications.

    A file move is a removal of the source path followed by an addition at
    the destination; either half is dropped when that path is not a
    document.  With ``debounce=0`` every document event is applied as it
    arrives; otherwise events wait in :attr:`pending` until
    :meth:`flush_pending` finds them settled.
    """

    DEBOUNCE_SECONDS = 0.3

    def __init__(
        self,
        index: "VaultIndex",
        on_change: Listener | None = None,
        debounce: float | None = None,
    ) -> None:
        super().__init__()
        self.index = index
        self.on_change = on_change
        self.debounce = self.DEBOUNCE_SECONDS if debounce is None else debounce
        self.pending: dict[Path, PendingEvent] = {}
        self._pending_lock = threading.Lock()

    def _vault_relative(self, path: str | bytes) -> str | None:
        try:
            return _as_path(path).relative_to(self.index.vault_dir).as_posix()
        except ValueError:
            return None

    def _is_relevant(self, path: str | bytes) -> bool:
        relative = self._vault_relative(path)
        return relative is not None and self.index.config.is_document(relative)

    def _is_relevant_dir(self, path: str | bytes) -> bool:
        relative = self._vault_relative(path)
        return relative is not None and self.index.config.is_tracked_dir(relative)

    # ------------------------------------------------------------------
    # Debouncing
    # ------------------------------------------------------------------

    def _queue(self, kind: str, path: str | bytes) -> None:
        p = _as_path(path)
        if self.debounce <= 0:
            self._dispatch(kind, p)
            return
        with self._pending_lock:
            previous = self.pending.get(p)
            if kind == "changed" and previous is not None and previous.kind == "added":
                kind = "added"
            self.pending[p] = PendingEvent(kind=kind, path=p, timestamp=time.monotonic())

    def flush_pending(self, now: float | None = None) -> int:
        """Apply every pending event quiet for the debounce window.

        Returns how many were applied.  ``now`` defaults to
        :func:`time.monotonic`.
        """
        if now is None:
            now = time.monotonic()
        with self._pending_lock:
            due = [e for e in self.pending.values() if now - e.timestamp >= self.debounce]
            for event in due:
                del self.pending[event.path]
        for event in sorted(due, key=lambda e: e.timestamp):
            self._dispatch(event.kind, event.path)
        return len(due)

    def _drop_pending_under(self, folder: Path) -> None:
        with self._pending_lock:
            for path in [p for p in self.pending if p.is_relative_to(folder)]:
                del self.pending[path]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, kind: str, path: Path) -> None:
        try:
            if kind == "removed":
                self.index.notify_removed(path)
            elif kind == "added":
                self.index.notify_added(path)
            elif kind == "changed":
                self.index.notify_changed(path)
            elif kind == "folder_removed":
                self.index.notify_folder_removed(path)
            else:
                self.index.notify_folder_added(path)
        except IndexInvariantError:
            raise
        except Exception:  # noqa: BLE001
            # the index keeps its last good state
            logger.exception("Failed to apply %s event for %s", kind, path)
            return
        if self.on_change is not None:
            self.on_change(kind, path)

    def _folder_removed(self, path: str | bytes) -> None:
        folder = _as_path(path)
        self._drop_pending_under(folder)
        self._dispatch("folder_removed", folder)

    def on_created(self, event: FileSystemEvent) -> None:
        if isinstance(event, FileCreatedEvent) and self._is_relevant(event.src_path):
            self._queue("added", event.src_path)
        elif isinstance(event, DirCreatedEvent) and self._is_relevant_dir(event.src_path):
            self._dispatch("folder_added", _as_path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if isinstance(event, FileModifiedEvent) and self._is_relevant(event.src_path):
            self._queue("changed", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if isinstance(event, FileDeletedEvent) and self._is_relevant(event.src_path):
            self._queue("removed", event.src_path)
        elif isinstance(event, DirDeletedEvent) and self._is_relevant_dir(event.src_path):
            self._folder_removed(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if isinstance(event, FileMovedEvent):
            if self._is_relevant(event.src_path):
                self._queue("removed", event.src_path)
            if self._is_relevant(event.dest_path):
                self._queue("added", event.dest_path)
        elif isinstance(event, DirMovedEvent):
            if self._is_relevant_dir(event.src_path):
                self._folder_removed(event.src_path)
            if self._is_relevant_dir(event.dest_path):
                self._dispatch("folder_added", _as_path(event.dest_path))


def _flush_loop(observer: "BaseObserver", handler: VaultEventHandler) -> None:
    interval = min(handler.debounce / 2, 0.5)
    while observer.is_alive():
        time.sleep(interval)
        handler.flush_pending()
    handler.flush_pending(now=float("inf"))


def watch_vault(
    index: "VaultIndex",
    on_change: Listener | None = None,
    recursive: bool = True,
    debounce: float | None = None,
) -> "BaseObserver":
    """Start watching *index*'s vault; returns the running observer.

    The caller stops it with ``observer.stop(); observer.join()``.  Pending
    events are flushed by a daemon thread that exits with the observer.
    """
    handler = VaultEventHandler(index, on_change=on_change, debounce=debounce)
    observer = Observer()
    observer.schedule(handler, str(index.vault_dir), recursive=recursive)
    observer.start()
    if handler.debounce > 0:
        threading.Thread(
            target=_flush_loop,
            args=(observer, handler),
            name="vaultindex-flush",
            daemon=True,
        ).start()
    logger.info("Watching %s for changes", index.vault_dir)
    return observer
