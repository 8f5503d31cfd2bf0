"""YAML front-matter extraction and ``[[WikiLink]]`` scanning.

Both entry points are pure functions: they keep no state between calls and
never raise on malformed input.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

import yaml

from vaultindex.document import PropertyValue, coerce_property

logger = logging.getLogger(__name__)

# [[Target]], [[Target|Display]], [[Target#Heading]], [[Target#Heading|Display]]
_WIKILINK_RE = re.compile(r"\[\[([^\]|#\n]*)(?:#[^\]|\n]*)?(?:\|[^\]\n]*)?\]\]")
# YAML front-matter block; must open on the very first line
_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*$\r?\n?", re.DOTALL | re.MULTILINE)
# Opening/closing line of a fenced code block
_FENCE_RE = re.compile(r"^\s*(```|~~~)")

_PROMOTED_KEYS = frozenset({"title", "aliases", "alias"})


@dataclass(frozen=True)
class Metadata:
    """Everything the extractor pulls out of one document."""

    title: str
    aliases: tuple[str, ...] = ()
    properties: dict[str, PropertyValue] = field(default_factory=dict)
    body: str = ""


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``.  When there is no front-matter block,
    or the block is not a valid YAML mapping, ``metadata_dict`` is empty and
    ``body`` is the whole of *content*.
    """
    if content.startswith("\ufeff"):
        content = content[1:]
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        logger.debug("Ignoring malformed front-matter: %s", exc)
        return {}, content
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        logger.debug("Ignoring front-matter that is a %s, not a mapping", type(meta).__name__)
        return {}, content
    return meta, content[match.end() :]


def _as_strings(value: Any) -> list[str]:
    """Flatten a string-or-list front-matter value into a list of strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    result: list[str] = []
    for item in items:
        if item is None or isinstance(item, (dict, list)):
            continue
        text = str(item).strip()
        if text:
            result.append(text)
    return result


def extract_metadata(content: str, fallback_title: str) -> Metadata:
    """Parse *content* into title, aliases, remaining properties and body.

    ``title`` comes from the front-matter when it is a non-empty scalar and
    from *fallback_title* (the filename stem) otherwise.  ``aliases`` and
    ``alias`` are merged, in that order, duplicates kept.
    """
    frontmatter, body = parse_frontmatter(content)

    raw_title = frontmatter.get("title")
    title = fallback_title
    if isinstance(raw_title, str) and raw_title.strip():
        title = raw_title
    elif isinstance(raw_title, (int, float)) and not isinstance(raw_title, bool):
        title = str(raw_title)

    aliases = _as_strings(frontmatter.get("aliases")) + _as_strings(frontmatter.get("alias"))

    properties = {
        str(k): coerce_property(v) for k, v in frontmatter.items() if k not in _PROMOTED_KEYS
    }
    return Metadata(title=title, aliases=tuple(aliases), properties=properties, body=body)


def scan_links(text: str) -> Iterator[str]:
    """Yield every ``[[WikiLink]]`` target in *text*, in order.

    Display text after ``|`` and heading anchors after ``#`` are dropped and
    the target is stripped of surrounding whitespace.  Links inside fenced
    code blocks are skipped.  Duplicates are yielded as found.
    """
    in_fence = False
    for line in text.splitlines():
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        for m in _WIKILINK_RE.finditer(line):
            target = m.group(1).strip()
            if target:
                yield target
