"""LinkGraph: forward-link and backlink adjacency between document keys.

Edges are kept incrementally: recomputing one document's outgoing links
only touches the backlink sets of targets it gained or lost.  The graph
holds keys only; documents are looked up in the catalog by the caller.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Iterable

from vaultindex.errors import IndexInvariantError
from vaultindex.resolver import ResolutionIndex, reference_forms

if TYPE_CHECKING:
    import networkx as nx

    from vaultindex.document import Document


class LinkGraph:
    """Directed link graph resolved through a :class:`ResolutionIndex`."""

    def __init__(self, resolver: ResolutionIndex) -> None:
        self._resolver = resolver
        self._forward: dict[str, set[str]] = {}
        self._backlinks: dict[str, set[str]] = {}
        #: Raw reference text per source, as scanned
        self._references: dict[str, tuple[str, ...]] = {}
        #: Reference text that resolved to nothing, per source
        self._unresolved: dict[str, tuple[str, ...]] = {}
        #: Lookup form of a reference -> sources that contain it
        self._mentions: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def recompute_outgoing(self, key: str, references: Iterable[str]) -> None:
        """Resolve *references* and make them the outgoing edges of *key*."""
        references = tuple(references)
        self._set_references(key, references)

        targets: set[str] = set()
        unresolved: list[str] = []
        for text in references:
            target = self._resolver.resolve(text)
            if target is None:
                unresolved.append(text)
            else:
                targets.add(target)

        previous = self._forward.get(key, set())
        for target in previous - targets:
            self._unlink_backlink(target, key)
        for target in targets - previous:
            self._backlinks.setdefault(target, set()).add(key)
        self._forward[key] = targets
        self._unresolved[key] = tuple(unresolved)

    def reresolve(self, key: str) -> None:
        """Recompute *key*'s edges from its stored references."""
        if key in self._references:
            self.recompute_outgoing(key, self._references[key])

    def remove_document(self, key: str) -> None:
        """Drop *key* and every edge that touches it."""
        for target in self._forward.pop(key, set()):
            self._unlink_backlink(target, key)
        for source in self._backlinks.pop(key, set()):
            outgoing = self._forward.get(source)
            if outgoing is not None:
                outgoing.discard(key)
        self._set_references(key, ())
        self._references.pop(key, None)
        self._unresolved.pop(key, None)

    def _unlink_backlink(self, target: str, source: str) -> None:
        sources = self._backlinks.get(target)
        if sources is None:
            return
        sources.discard(source)
        if not sources:
            del self._backlinks[target]

    def _set_references(self, key: str, references: tuple[str, ...]) -> None:
        old_forms = set().union(*(reference_forms(t) for t in self._references.get(key, ())))
        new_forms = set().union(*(reference_forms(t) for t in references))
        for form in old_forms - new_forms:
            sources = self._mentions.get(form)
            if sources is not None:
                sources.discard(key)
                if not sources:
                    del self._mentions[form]
        for form in new_forms - old_forms:
            self._mentions.setdefault(form, set()).add(key)
        self._references[key] = references

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def forward(self, key: str) -> set[str]:
        return set(self._forward.get(key, ()))

    def backlinks(self, key: str) -> set[str]:
        return set(self._backlinks.get(key, ()))

    def references(self, key: str) -> tuple[str, ...]:
        return self._references.get(key, ())

    def unresolved(self, key: str) -> tuple[str, ...]:
        return self._unresolved.get(key, ())

    def sources_mentioning(self, forms: Iterable[str]) -> set[str]:
        """Sources with at least one reference matching any of *forms*."""
        result: set[str] = set()
        for form in forms:
            result.update(self._mentions.get(form, ()))
        return result

    def nodes(self) -> set[str]:
        return set(self._forward)

    def edges(self) -> list[tuple[str, str]]:
        """Return ``(source_key, target_key)`` pairs, sorted."""
        return sorted((src, tgt) for src, targets in self._forward.items() for tgt in targets)

    def neighbourhood(self, key: str, depth: int = 1) -> dict[str, int]:
        """Keys reachable from *key* within *depth* hops in either direction.

        Returns ``{key: hops}``; *key* itself is included at ``0``.
        """
        if key not in self._forward:
            return {}
        seen = {key: 0}
        queue = deque([key])
        while queue:
            current = queue.popleft()
            hops = seen[current]
            if hops >= depth:
                continue
            for other in self._forward.get(current, set()) | self._backlinks.get(current, set()):
                if other not in seen:
                    seen[other] = hops + 1
                    queue.append(other)
        return seen

    def check_symmetry(self) -> None:
        """Raise :class:`IndexInvariantError` unless forward and backlinks are transposes."""
        for source, targets in self._forward.items():
            for target in targets:
                if source not in self._backlinks.get(target, ()):
                    raise IndexInvariantError(
                        f"{source!r} links to {target!r} but is missing from its backlinks"
                    )
        for target, sources in self._backlinks.items():
            if not sources:
                raise IndexInvariantError(f"Empty backlink set left for {target!r}")
            for source in sources:
                if target not in self._forward.get(source, ()):
                    raise IndexInvariantError(
                        f"{source!r} is a backlink of {target!r} without a forward link"
                    )

    def snapshot(self) -> tuple[dict[str, frozenset[str]], dict[str, frozenset[str]]]:
        """Immutable copy of ``(forward, backlinks)`` for state comparisons."""
        return (
            {k: frozenset(v) for k, v in self._forward.items()},
            {k: frozenset(v) for k, v in self._backlinks.items()},
        )


def build_digraph(documents: Iterable["Document"], edges: Iterable[tuple[str, str]]) -> "nx.DiGraph":
    """Build a :class:`networkx.DiGraph` with one node per document.

    Nodes carry ``title`` and ``path`` attributes.
    """
    import networkx as nx

    G: nx.DiGraph = nx.DiGraph()
    for doc in documents:
        G.add_node(doc.key, title=doc.title, path=doc.relative_path)
    for src, tgt in edges:
        if src in G and tgt in G:
            G.add_edge(src, tgt)
    return G
