"""Unit tests for vaultindex.catalog."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from vaultindex.catalog import DocumentCatalog, key_for
from vaultindex.document import Document
from vaultindex.errors import IndexInvariantError

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _doc(relative_path: str, title: str = "T") -> Document:
    return Document(
        key=key_for(relative_path),
        title=title,
        relative_path=relative_path,
        last_modified=_EPOCH,
        path=Path("/vault") / relative_path,
    )


class TestKeyFor:
    def test_extension_dropped(self):
        assert key_for("Alpha.md") == "Alpha"

    def test_separators_preserved_and_segments_escaped(self):
        assert key_for("Projects/My Note.md") == "Projects/My%20Note"

    def test_backslashes_normalised(self):
        assert key_for("Projects\\Plan.md") == "Projects/Plan"

    def test_uri_component_safe_set(self):
        assert key_for("a-b_c.d!~*'().md") == "a-b_c.d!~*'()"

    def test_reserved_characters_escaped(self):
        assert key_for("Q&A?#1.md") == "Q%26A%3F%231"

    def test_only_trailing_extension_removed(self):
        assert key_for("notes.md/x.md") == "notes.md/x"

    def test_extension_matched_case_sensitively(self):
        assert key_for("Note.MD") == "Note.MD"
        assert key_for("Note.MD") != key_for("Note.md")

    def test_distinct_paths_give_distinct_keys(self):
        paths = ["a b.md", "a%20b.md", "a/b.md", "a%2Fb.md", "A b.md"]
        keys = {key_for(p) for p in paths}
        assert len(keys) == len(paths)


class TestDocumentCatalog:
    def test_upsert_returns_previous(self):
        catalog = DocumentCatalog()
        first = _doc("a.md", "First")
        second = _doc("a.md", "Second")
        assert catalog.upsert("a.md", first) is None
        assert catalog.upsert("a.md", second) is first
        assert catalog.get("a") is second
        assert len(catalog) == 1

    def test_remove_returns_document(self):
        catalog = DocumentCatalog()
        doc = _doc("dir/b.md")
        catalog.upsert("dir/b.md", doc)
        assert catalog.remove("dir/b.md") is doc
        assert "dir/b" not in catalog
        assert catalog.remove("dir/b.md") is None

    def test_all_and_keys(self):
        catalog = DocumentCatalog()
        for p in ("x.md", "y.md"):
            catalog.upsert(p, _doc(p))
        assert {d.key for d in catalog.all()} == {"x", "y"}
        assert set(catalog.keys()) == {"x", "y"}

    def test_key_mismatch_is_an_invariant_error(self):
        catalog = DocumentCatalog()
        with pytest.raises(IndexInvariantError):
            catalog.upsert("other.md", _doc("a.md"))
