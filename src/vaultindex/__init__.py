"""In-memory index of a Markdown vault: pages, links, aliases and search."""

from vaultindex.catalog import DocumentCatalog, key_for
from vaultindex.config import IndexConfig
from vaultindex.document import Document, PropertyValue
from vaultindex.errors import DocumentReadError, IndexInvariantError, VaultIndexError
from vaultindex.graph import LinkGraph
from vaultindex.index import VaultIndex
from vaultindex.parser import extract_metadata, parse_frontmatter, scan_links
from vaultindex.resolver import RESOLVERS, ResolutionIndex
from vaultindex.search import search
from vaultindex.storage import DocumentSource, FileSystemSource, walk_documents

__all__ = [
    "Document",
    "DocumentCatalog",
    "DocumentReadError",
    "DocumentSource",
    "FileSystemSource",
    "IndexConfig",
    "IndexInvariantError",
    "LinkGraph",
    "PropertyValue",
    "RESOLVERS",
    "ResolutionIndex",
    "VaultIndex",
    "VaultIndexError",
    "extract_metadata",
    "key_for",
    "parse_frontmatter",
    "scan_links",
    "search",
    "walk_documents",
]
