"""Index configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath

#: Directory holding the serving layer's private state inside a vault.
STATE_DIR_NAME = ".obsidigen"


@dataclass(frozen=True)
class IndexConfig:
    """Which files count as documents, plus query defaults."""

    extensions: tuple[str, ...] = (".md",)
    excluded_dirs: frozenset[str] = field(
        default_factory=lambda: frozenset({STATE_DIR_NAME, "node_modules"})
    )
    include_hidden: bool = False
    search_limit: int = 20
    recent_limit: int = 10

    def is_excluded_dir(self, name: str) -> bool:
        if name in self.excluded_dirs:
            return True
        return not self.include_hidden and name.startswith(".")

    def is_document(self, relative_path: str | PurePosixPath) -> bool:
        """Return ``True`` when *relative_path* (vault-relative) should be indexed."""
        parts = PurePosixPath(str(relative_path).replace("\\", "/")).parts
        if not parts:
            return False
        *dirs, name = parts
        if any(self.is_excluded_dir(d) for d in dirs):
            return False
        if not self.include_hidden and name.startswith("."):
            return False
        # case-sensitive, matching key_for
        return any(name.endswith(ext) and len(name) > len(ext) for ext in self.extensions)

    def is_tracked_dir(self, relative_path: str | PurePosixPath) -> bool:
        """Return ``True`` when documents below *relative_path* may be indexed."""
        parts = PurePosixPath(str(relative_path).replace("\\", "/")).parts
        return bool(parts) and not any(self.is_excluded_dir(d) for d in parts)

    def include_entry(self, relative_path: PurePosixPath, is_dir: bool) -> bool:
        """Walk predicate: descend into directories and keep documents."""
        if is_dir:
            return not self.is_excluded_dir(relative_path.name)
        return self.is_document(relative_path)
