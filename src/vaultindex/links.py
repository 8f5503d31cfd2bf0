"""Turning link text into hrefs for the presentation layer.

These helpers only query the index; they never modify it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

if TYPE_CHECKING:
    from vaultindex.index import VaultIndex

_EXTERNAL_RE = re.compile(r"^https?://", re.IGNORECASE)
_ANCHOR_STRIP_RE = re.compile(r"[^\w-]")


@dataclass(frozen=True)
class ResolvedLink:
    href: str
    title: str
    exists: bool
    is_external: bool = False


def heading_anchor(heading: str) -> str:
    """``"My Heading!"`` -> ``"my-heading"``."""
    return _ANCHOR_STRIP_RE.sub("", re.sub(r"\s+", "-", heading.strip().lower()))


def missing_page_href(text: str) -> str:
    """Href used for a link whose target does not exist yet."""
    return "/" + quote(re.sub(r"\s+", "-", text.strip().lower()), safe="!*'()")


def resolve_link(text: str, current_key: str, index: "VaultIndex") -> ResolvedLink:
    """Resolve ``Page``, ``Page#Heading``, ``#Heading`` or an external URL.

    Unresolved targets still get an href (so the page can be created) but
    ``exists`` is ``False``; renderers style those links differently.
    """
    if _EXTERNAL_RE.match(text):
        return ResolvedLink(href=text, title=text, exists=True, is_external=True)

    page_part, _, heading = text.partition("#")
    page_part = page_part.strip()
    key = index.resolve(page_part) if page_part else current_key
    page = index.get_page(key) if key else None

    href = f"/{key}" if key else missing_page_href(page_part)
    if heading:
        href += "#" + heading_anchor(heading)
    return ResolvedLink(
        href=href,
        title=page.title if page else (page_part or text),
        exists=page is not None,
    )


def breadcrumbs(key: str, index: "VaultIndex") -> list[dict[str, str]]:
    """``[{title, href}, ...]`` from the vault root down to *key*."""
    crumbs = [{"title": "Home", "href": "/"}]
    parts = key.split("/")
    for i, part in enumerate(parts):
        prefix = "/".join(parts[: i + 1])
        page = index.get_page(prefix)
        crumbs.append(
            {
                "title": page.title if page else unquote(part),
                "href": "/" + prefix,
            }
        )
    return crumbs
