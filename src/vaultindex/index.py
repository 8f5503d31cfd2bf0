"""VaultIndex: in-memory index of all documents and their relationships.

The index is the single owner of the catalog, the resolution tables and the
link graph.  Notifications about changed files are applied one at a time,
each as a single exclusive section; queries run under the shared side of the
same lock, so they always see the state before or after a whole update.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Iterable
from urllib.parse import unquote

from vaultindex.catalog import DocumentCatalog
from vaultindex.config import IndexConfig
from vaultindex.document import Document
from vaultindex.errors import DocumentReadError, IndexInvariantError
from vaultindex.graph import LinkGraph, build_digraph
from vaultindex.locks import ReadWriteLock
from vaultindex.parser import extract_metadata, scan_links
from vaultindex.resolver import FOLDED_KEY, ResolutionIndex, document_forms, name_entries
from vaultindex.search import search as search_documents
from vaultindex.storage import DocumentSource, FileSystemSource, walk_documents

if TYPE_CHECKING:
    import networkx as nx

logger = logging.getLogger(__name__)


def _by_title(documents: Iterable[Document]) -> list[Document]:
    return sorted(documents, key=lambda d: (d.title.lower(), d.key))


def _sort_tree(nodes: list[dict[str, Any]]) -> None:
    nodes.sort(key=lambda n: (not n["is_folder"], n["name"].lower(), n["name"]))
    for node in nodes:
        _sort_tree(node["children"])


class VaultIndex:
    """Indexes a vault directory and keeps the index current as files change.

    Usage::

        index = VaultIndex(Path("~/notes").expanduser())
        index.build()
        index.notify_changed("Projects/Plan.md")
        index.backlinks("Projects/Plan")
    """

    def __init__(
        self,
        vault_dir: Path,
        config: IndexConfig | None = None,
        source: DocumentSource | None = None,
    ) -> None:
        self.vault_dir = Path(vault_dir).absolute()
        self.config = config or IndexConfig()
        self.source: DocumentSource = source or FileSystemSource()
        self._lock = ReadWriteLock()
        self._notify_lock = threading.Lock()
        self._reset()

    def _reset(self) -> None:
        self._catalog = DocumentCatalog(self.config.extensions)
        self._resolver = ResolutionIndex()
        self._graph = LinkGraph(self._resolver)

    # ------------------------------------------------------------------
    # Build / notifications
    # ------------------------------------------------------------------

    def build(self) -> None:
        """(Re-)scan the vault and index every document from scratch."""
        started = time.perf_counter()
        with self._notify_lock, self._lock.write():
            self._reset()
        count = 0
        for path in walk_documents(self.vault_dir, self.config.include_entry):
            if self._update(path):
                count += 1
        logger.info(
            "Indexed %d documents from %s in %.2fs",
            count,
            self.vault_dir,
            time.perf_counter() - started,
        )

    def notify_added(self, path: str | Path) -> None:
        """A document appeared at *path* (absolute, or relative to the vault)."""
        self._update(path)

    def notify_changed(self, path: str | Path) -> None:
        """The document at *path* was modified."""
        self._update(path)

    def notify_removed(self, path: str | Path) -> None:
        """The document at *path* was deleted; a no-op if it was never indexed."""
        relative = self._relative(path)
        if relative is None:
            return
        with self._notify_lock, self._lock.write():
            previous = self._remove(relative)
        if previous is not None:
            logger.debug("Removed %s", previous.key)

    def notify_folder_removed(self, path: str | Path) -> int:
        """The folder at *path* is gone; drop every document below it.

        Returns the number of documents removed.
        """
        folder = self._relative_dir(path)
        if folder is None:
            return 0
        prefix = folder + "/"
        with self._notify_lock, self._lock.write():
            below = sorted(
                d.relative_path
                for d in self._catalog.all()
                if d.relative_path.startswith(prefix)
            )
            for relative in below:
                self._remove(relative)
        if below:
            logger.debug("Removed %d documents under %s", len(below), folder)
        return len(below)

    def notify_folder_added(self, path: str | Path) -> int:
        """A folder appeared at *path* (e.g. moved in); index every document in it.

        Returns the number of documents indexed.
        """
        folder = self._relative_dir(path)
        if folder is None:
            return 0
        count = 0
        for document_path in walk_documents(self.vault_dir / folder, self.config.include_entry):
            if self._update(document_path):
                count += 1
        return count

    def _remove(self, relative: str) -> Document | None:
        """Drop one document; the caller holds both locks."""
        previous = self._catalog.remove(relative)
        if previous is None:
            return None
        self._resolver.reindex(previous, None)
        self._graph.remove_document(previous.key)
        self._reresolve_dependents(previous, None)
        return previous

    def _vault_relative(self, path: str | Path) -> PurePosixPath | None:
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.vault_dir)
            except ValueError:
                try:
                    p = p.resolve().relative_to(self.vault_dir.resolve())
                except ValueError:
                    logger.debug("Ignoring %s: outside %s", path, self.vault_dir)
                    return None
        relative = PurePosixPath(p.as_posix())
        if ".." in relative.parts:
            logger.debug("Ignoring %s: outside %s", path, self.vault_dir)
            return None
        return relative

    def _relative(self, path: str | Path) -> str | None:
        """Vault-relative POSIX path for *path*, or ``None`` if it is not a document."""
        relative = self._vault_relative(path)
        if relative is None:
            return None
        if not self.config.is_document(relative):
            logger.debug("Ignoring %s: not a vault document", path)
            return None
        return relative.as_posix()

    def _relative_dir(self, path: str | Path) -> str | None:
        relative = self._vault_relative(path)
        if relative is None:
            return None
        if not self.config.is_tracked_dir(relative):
            logger.debug("Ignoring %s: not a vault folder", path)
            return None
        return relative.as_posix()

    def _update(self, path: str | Path) -> bool:
        relative = self._relative(path)
        if relative is None:
            return False
        with self._notify_lock:
            try:
                document, references = self._load(relative)
            except DocumentReadError as exc:
                logger.warning("Skipping %s: %s", relative, exc.reason)
                return False
            with self._lock.write():
                previous = self._catalog.upsert(relative, document)
                self._resolver.reindex(previous, document)
                self._graph.recompute_outgoing(document.key, references)
                self._reresolve_dependents(previous, document)
        logger.debug("Indexed %s (%d links)", document.key, len(references))
        return True

    def _load(self, relative: str) -> tuple[Document, tuple[str, ...]]:
        """Read and parse one document; no index state is touched."""
        absolute = self.vault_dir / relative
        text = self.source.read_raw_text(absolute)
        modified = self.source.last_modified(absolute)
        meta = extract_metadata(text, fallback_title=PurePosixPath(relative).stem)
        document = Document(
            key=self._catalog.key_for(relative),
            title=meta.title,
            relative_path=relative,
            last_modified=modified,
            path=absolute,
            aliases=meta.aliases,
            properties=meta.properties,
        )
        return document, tuple(scan_links(meta.body))

    def _reresolve_dependents(self, old: Document | None, new: Document | None) -> None:
        """Re-resolve other documents whose links may now point elsewhere.

        Only documents with a reference matching a name *old* had or *new*
        has can be affected.  Nothing to do when the table rows are unchanged.
        """
        if name_entries(old) == name_entries(new):
            return
        old_forms = document_forms(old) if old is not None else set()
        new_forms = document_forms(new) if new is not None else set()
        key = new.key if new is not None else old.key  # type: ignore[union-attr]
        affected = self._graph.sources_mentioning(old_forms | new_forms)
        affected.discard(key)
        for source in sorted(affected):
            self._graph.reresolve(source)

    # ------------------------------------------------------------------
    # Page queries
    # ------------------------------------------------------------------

    def get_page(self, key: str) -> Document | None:
        with self._lock.read():
            return self._catalog.get(key)

    def find_page(self, text: str) -> Document | None:
        """Look a page up by exact key, case-insensitive key, then as link text."""
        with self._lock.read():
            document = self._catalog.get(text)
            if document is not None:
                return document
            key = self._resolver.lookup(FOLDED_KEY, text.lower())
            if key is None:
                key = self._resolver.resolve(unquote(text))
            return self._catalog.get(key) if key is not None else None

    def resolve(self, text: str) -> str | None:
        """Resolve link text to a key; ``None`` for an unresolved reference."""
        with self._lock.read():
            return self._resolver.resolve(text)

    def all_pages(self) -> list[Document]:
        with self._lock.read():
            return sorted(self._catalog.all(), key=lambda d: d.key)

    def recent_pages(self, limit: int | None = None) -> list[Document]:
        """Most recently modified documents first."""
        if limit is None:
            limit = self.config.recent_limit
        with self._lock.read():
            documents = self._catalog.all()
        documents.sort(key=lambda d: d.key)
        documents.sort(key=lambda d: d.last_modified, reverse=True)
        return documents[: max(limit, 0)]

    @property
    def page_count(self) -> int:
        with self._lock.read():
            return len(self._catalog)

    def __len__(self) -> int:
        return self.page_count

    def search(self, query: str, limit: int | None = None) -> list[Document]:
        """Ranked title/alias/path search; see :func:`vaultindex.search.search`."""
        if limit is None:
            limit = self.config.search_limit
        with self._lock.read():
            documents = self._catalog.all()
        return search_documents(query, documents, limit)

    def page_tree(self) -> list[dict[str, Any]]:
        """Folder/page hierarchy of the vault, for navigation.

        Each node is ``{name, path, is_folder, key, children}``; ``path`` is
        the vault-relative path without the extension.  A folder that also has
        a page of the same name (``Projects.md`` next to ``Projects/``) is a
        single folder node carrying that page's key.  Folders sort before
        pages, then by case-insensitive name.
        """
        with self._lock.read():
            documents = sorted(self._catalog.all(), key=lambda d: d.key)
        root: list[dict[str, Any]] = []
        for document in documents:
            parts = PurePosixPath(document.relative_path).with_suffix("").parts
            children = root
            for i, part in enumerate(parts):
                is_last = i == len(parts) - 1
                node = next((n for n in children if n["name"] == part), None)
                if node is None:
                    node = {
                        "name": part,
                        "path": "/".join(parts[: i + 1]),
                        "is_folder": not is_last,
                        "key": None,
                        "children": [],
                    }
                    children.append(node)
                elif not is_last:
                    node["is_folder"] = True
                if is_last:
                    node["key"] = document.key
                children = node["children"]
        _sort_tree(root)
        return root

    # ------------------------------------------------------------------
    # Link queries
    # ------------------------------------------------------------------

    def _documents(self, keys: Iterable[str]) -> list[Document]:
        found = (self._catalog.get(k) for k in keys)
        return _by_title(d for d in found if d is not None)

    def backlinks(self, key: str) -> list[Document]:
        """Documents that link to *key*, ordered by title."""
        with self._lock.read():
            return self._documents(self._graph.backlinks(key))

    def forward_links(self, key: str) -> list[Document]:
        """Documents that *key* links to, ordered by title."""
        with self._lock.read():
            return self._documents(self._graph.forward(key))

    def unresolved_links(self, key: str) -> list[str]:
        """Reference text in *key* that matched no document, in document order."""
        with self._lock.read():
            return list(self._graph.unresolved(key))

    def edges(self) -> list[tuple[str, str]]:
        """Return ``(source_key, target_key)`` pairs for every resolved link."""
        with self._lock.read():
            return self._graph.edges()

    def graph_data(self) -> dict[str, list[dict[str, Any]]]:
        """Nodes and edges of the whole vault, ready for JSON encoding."""
        with self._lock.read():
            nodes = [
                {"id": d.key, "label": d.title, "path": d.relative_path}
                for d in sorted(self._catalog.all(), key=lambda d: d.key)
            ]
            edges = [{"source": s, "target": t} for s, t in self._graph.edges()]
        return {"nodes": nodes, "edges": edges}

    def local_graph(self, key: str, depth: int = 1) -> dict[str, list[dict[str, Any]]] | None:
        """Nodes within *depth* links of *key*, or ``None`` if *key* is unknown.

        Each node carries its distance from *key* as ``depth``.  Edges are
        those leaving or entering a node closer than *depth*.
        """
        with self._lock.read():
            if key not in self._catalog:
                return None
            hops = self._graph.neighbourhood(key, depth)
            nodes = []
            for k in sorted(hops, key=lambda k: (hops[k], k)):
                document = self._catalog.get(k)
                if document is not None:
                    nodes.append({"id": k, "label": document.title, "depth": hops[k]})
            edges = [
                {"source": s, "target": t}
                for s, t in self._graph.edges()
                if s in hops and t in hops and min(hops[s], hops[t]) < depth
            ]
        return {"nodes": nodes, "edges": edges}

    def to_networkx(self) -> "nx.DiGraph":
        """The link graph as a :class:`networkx.DiGraph` (nodes keyed by document key)."""
        with self._lock.read():
            return build_digraph(self._catalog.all(), self._graph.edges())

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """Raise :class:`IndexInvariantError` if the derived tables disagree."""
        with self._lock.read():
            catalog_keys = set(self._catalog.keys())
            if self._resolver.keys() != catalog_keys:
                raise IndexInvariantError("Resolution tables and catalog hold different keys")
            stale = {key for _, _, key in self._resolver.entries()} - catalog_keys
            if stale:
                raise IndexInvariantError(f"Resolution tables reference removed keys: {sorted(stale)}")
            if self._graph.nodes() != catalog_keys:
                raise IndexInvariantError("Link graph and catalog hold different keys")
            for source, target in self._graph.edges():
                if target not in catalog_keys:
                    raise IndexInvariantError(f"{source!r} links to missing {target!r}")
            self._graph.check_symmetry()
