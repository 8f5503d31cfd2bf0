"""Deterministic substring/prefix search over document titles, aliases and paths."""

from __future__ import annotations

from typing import Iterable

from vaultindex.document import Document

TITLE_CONTAINS = 100
TITLE_EXACT = 50
TITLE_PREFIX = 25
ALIAS_CONTAINS = 75
ALIAS_EXACT = 50
PATH_CONTAINS = 25


def score(document: Document, query: str) -> int:
    """Score *document* against an already lowercased, stripped *query*."""
    total = 0
    title = document.title.lower()
    if query in title:
        total += TITLE_CONTAINS
        if title == query:
            total += TITLE_EXACT
        if title.startswith(query):
            total += TITLE_PREFIX

    aliases = [a.lower() for a in document.aliases]
    if any(query in a for a in aliases):
        total += ALIAS_CONTAINS
        if any(a == query for a in aliases):
            total += ALIAS_EXACT

    if query in document.relative_path.lower():
        total += PATH_CONTAINS
    return total


def search(query: str, documents: Iterable[Document], limit: int = 20) -> list[Document]:
    """Rank *documents* by how well they match *query*.

    Highest score first; ties go to the case-insensitive title, then the key.
    A blank query matches nothing.
    """
    q = query.strip().lower()
    if not q or limit <= 0:
        return []
    scored = [(score(doc, q), doc) for doc in documents]
    ranked = sorted(
        ((s, doc) for s, doc in scored if s > 0),
        key=lambda item: (-item[0], item[1].title.lower(), item[1].key),
    )
    return [doc for _, doc in ranked[:limit]]
