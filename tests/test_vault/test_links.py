"""Unit tests for vaultindex.links."""

from pathlib import Path

import pytest

from vaultindex.index import VaultIndex
from vaultindex.links import ResolvedLink, breadcrumbs, heading_anchor, missing_page_href, resolve_link


@pytest.fixture()
def index(tmp_path: Path) -> VaultIndex:
    (tmp_path / "A.md").write_text("---\ntitle: Alpha\n---\n", encoding="utf-8")
    (tmp_path / "My Dir").mkdir()
    (tmp_path / "My Dir" / "Note.md").write_text("[[Alpha]]", encoding="utf-8")
    idx = VaultIndex(tmp_path)
    idx.build()
    return idx


class TestHelpers:
    def test_heading_anchor(self):
        assert heading_anchor("My Heading!") == "my-heading"
        assert heading_anchor("  Spaced   out  ") == "spaced-out"

    def test_missing_page_href(self):
        assert missing_page_href("New Page") == "/new-page"
        assert missing_page_href("Q&A") == "/q%26a"


class TestResolveLink:
    def test_existing_page(self, index: VaultIndex):
        assert resolve_link("Alpha", "My%20Dir/Note", index) == ResolvedLink(
            href="/A", title="Alpha", exists=True
        )

    def test_page_with_heading(self, index: VaultIndex):
        link = resolve_link("alpha#Some Section", "My%20Dir/Note", index)
        assert link.href == "/A#some-section"
        assert link.exists

    def test_heading_on_current_page(self, index: VaultIndex):
        link = resolve_link("#Intro", "A", index)
        assert link.href == "/A#intro"
        assert link.title == "Alpha"

    def test_missing_page(self, index: VaultIndex):
        link = resolve_link("Nonexistent Page", "A", index)
        assert link == ResolvedLink(href="/nonexistent-page", title="Nonexistent Page", exists=False)

    def test_external_url(self, index: VaultIndex):
        link = resolve_link("https://example.com/x", "A", index)
        assert link.is_external
        assert link.href == "https://example.com/x"

    def test_key_with_space(self, index: VaultIndex):
        assert resolve_link("My Dir/Note", "A", index).href == "/My%20Dir/Note"


class TestBreadcrumbs:
    def test_nested(self, index: VaultIndex):
        assert breadcrumbs("My%20Dir/Note", index) == [
            {"title": "Home", "href": "/"},
            {"title": "My Dir", "href": "/My%20Dir"},
            {"title": "Note", "href": "/My%20Dir/Note"},
        ]

    def test_top_level(self, index: VaultIndex):
        assert breadcrumbs("A", index)[-1] == {"title": "Alpha", "href": "/A"}
