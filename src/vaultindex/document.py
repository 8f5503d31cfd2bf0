"""Core Document dataclass and the property value type."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Union

#: Values allowed in :attr:`Document.properties`.  Front-matter is parsed by
#: YAML, which can produce richer types (dates, binary); those are folded into
#: this closed set by :func:`coerce_property`.
PropertyValue = Union[
    str,
    int,
    float,
    bool,
    None,
    list["PropertyValue"],
    dict[str, "PropertyValue"],
]


def coerce_property(value: Any) -> PropertyValue:
    """Convert a parsed YAML value into a :data:`PropertyValue`."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {str(k): coerce_property(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [coerce_property(v) for v in value]
    return str(value)


def freeze_property(value: PropertyValue) -> Any:
    """Read-only copy of *value*: lists become tuples, maps become proxies."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze_property(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze_property(v) for v in value)
    return value


def thaw_property(value: Any) -> PropertyValue:
    """Inverse of :func:`freeze_property`, for JSON encoding."""
    if isinstance(value, Mapping):
        return {k: thaw_property(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw_property(v) for v in value]
    return value


@dataclass(frozen=True)
class Document:
    """A single indexed markdown document.

    Documents are values: a change on disk produces a new instance that
    replaces the old one in the catalog wholesale.
    """

    key: str
    title: str
    #: Path relative to the vault root, ``/``-separated.
    relative_path: str
    last_modified: datetime
    path: Path
    aliases: tuple[str, ...] = ()
    #: Read-only; see :func:`freeze_property`.
    properties: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", freeze_property(dict(self.properties)))

    @property
    def stem(self) -> str:
        """Filename without its extension."""
        return PurePosixPath(self.relative_path).stem

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "aliases": list(self.aliases),
            "path": self.relative_path,
            "properties": thaw_property(self.properties),
            "last_modified": self.last_modified.isoformat(),
        }
