"""ResolutionIndex: title, alias and key lookup tables for link resolution.

Link text is turned into a document key by trying each strategy in
:data:`RESOLVERS` in order; the first one that returns a key wins.
"""

from __future__ import annotations

from typing import Callable
from urllib.parse import unquote

from vaultindex.catalog import escape_segments
from vaultindex.document import Document

# Table names
ALIAS = "alias"
TITLE = "title"
KEY = "key"
FOLDED_KEY = "folded_key"
TAIL = "tail"

_TABLES = (ALIAS, TITLE, KEY, FOLDED_KEY, TAIL)

#: One row of a resolution table: ``(table, name, key)``.
Entry = tuple[str, str, str]


def normalize(text: str) -> str:
    """Lowercase and strip; internal whitespace is kept as-is."""
    return text.strip().lower()


def key_tail(key: str) -> str:
    """Unescaped, lowercased final segment of *key*."""
    return unquote(key.rsplit("/", 1)[-1]).lower()


def reference_forms(text: str) -> set[str]:
    """Every lookup string a reference can be matched under."""
    return {normalize(text), escape_segments(text.strip()).lower()}


def document_forms(document: Document) -> set[str]:
    """Every lookup string that can resolve to *document*.

    A reference resolves to *document* only if one of
    :func:`reference_forms` of that reference is in this set.
    """
    forms = {normalize(document.title), normalize(document.stem)}
    forms.update(normalize(a) for a in document.aliases)
    forms.add(document.key.lower())
    forms.add(key_tail(document.key))
    return forms


def name_entries(document: Document | None) -> set[Entry]:
    """Resolution table rows contributed by *document*."""
    if document is None:
        return set()
    key = document.key
    entries: set[Entry] = {
        (TITLE, normalize(document.title), key),
        (TITLE, normalize(document.stem), key),
        (KEY, key, key),
        (FOLDED_KEY, key.lower(), key),
        (TAIL, key_tail(key), key),
    }
    entries.update((ALIAS, normalize(alias), key) for alias in document.aliases)
    return entries


class ResolutionIndex:
    """Lookup tables derived from the catalog.

    Each table maps a name to the set of keys registered under it.  When a
    name is shared by several documents the lexicographically smallest key is
    returned, so resolution does not depend on indexing order.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, set[str]]] = {name: {} for name in _TABLES}

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reindex(self, old: Document | None, new: Document | None) -> None:
        """Replace the entries of *old* with those of *new*.

        Either side may be ``None`` (document added or removed).  Only the
        difference is applied, so identical states are a no-op.
        """
        old_entries = name_entries(old)
        new_entries = name_entries(new)
        for table, name, key in old_entries - new_entries:
            keys = self._tables[table].get(name)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._tables[table][name]
        for table, name, key in new_entries - old_entries:
            self._tables[table].setdefault(name, set()).add(key)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lookup(self, table: str, name: str) -> str | None:
        keys = self._tables[table].get(name)
        if not keys:
            return None
        return min(keys)

    def resolve(self, text: str) -> str | None:
        """Resolve reference *text* to a key, or ``None`` if nothing matches."""
        for resolver in RESOLVERS:
            key = resolver(text, self)
            if key is not None:
                return key
        return None

    def keys(self) -> set[str]:
        return set(self._tables[KEY])

    def entries(self) -> set[Entry]:
        """Every ``(table, name, key)`` row, for comparisons and integrity checks."""
        return {
            (table, name, key)
            for table, rows in self._tables.items()
            for name, keys in rows.items()
            for key in keys
        }


# ---------------------------------------------------------------------------
# Resolver strategies, in precedence order
# ---------------------------------------------------------------------------

Resolver = Callable[[str, ResolutionIndex], "str | None"]


def by_alias(text: str, index: ResolutionIndex) -> str | None:
    return index.lookup(ALIAS, normalize(text))


def by_title(text: str, index: ResolutionIndex) -> str | None:
    return index.lookup(TITLE, normalize(text))


def by_key(text: str, index: ResolutionIndex) -> str | None:
    return index.lookup(KEY, escape_segments(text.strip()))


def by_key_ignoring_case(text: str, index: ResolutionIndex) -> str | None:
    return index.lookup(FOLDED_KEY, escape_segments(text.strip()).lower())


def by_filename(text: str, index: ResolutionIndex) -> str | None:
    """Match the last key segment only.

    Two documents in different folders with the same filename both match;
    the smaller key wins.
    """
    return index.lookup(TAIL, normalize(text))


RESOLVERS: tuple[Resolver, ...] = (
    by_alias,
    by_title,
    by_key,
    by_key_ignoring_case,
    by_filename,
)
